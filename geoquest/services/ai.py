"""AI-assisted route and challenge authoring via OpenAI chat completions."""

import json
import re
from typing import Any, Dict, Optional

from flask import current_app
from openai import OpenAI

from geoquest.models import CHALLENGE_TYPES, DIFFICULTIES
from .errors import ServiceError

DUMMY_KEYS = {'', 'dummy-key-for-development'}
POINT_RANGES = {'easy': '10-20', 'medium': '15-30', 'hard': '20-40'}

ROUTE_SYSTEM_PROMPT = (
    "You are an expert location-based game designer. Create engaging routes with "
    "checkpoints and challenges for players to explore cities."
)
CHALLENGE_SYSTEM_PROMPT = (
    "You are an expert game designer creating engaging challenges for location-based games."
)

_JSON_BLOCK = re.compile(r'\{[\s\S]*\}')


class AIGenerationError(Exception):
    pass


def _get_openai_client() -> OpenAI:
    api_key = current_app.config.get('OPENAI_API_KEY') or ''
    if api_key in DUMMY_KEYS:
        raise AIGenerationError('OpenAI API key not configured')
    return OpenAI(api_key=api_key)


def _complete(system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
    client = _get_openai_client()
    completion = client.chat.completions.create(
        model=current_app.config.get('OPENAI_MODEL', 'gpt-4'),
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    content = completion.choices[0].message.content if completion.choices else None
    if not content:
        raise AIGenerationError('No response from AI service')
    return content


def _extract_json(text: str) -> Dict[str, Any]:
    match = _JSON_BLOCK.search(text or '')
    if not match:
        raise AIGenerationError('No JSON found in AI response')
    try:
        parsed = json.loads(match.group(0))
    except ValueError as exc:
        raise AIGenerationError(f'Invalid JSON in AI response: {exc}') from exc
    if not isinstance(parsed, dict):
        raise AIGenerationError('AI response is not a JSON object')
    return parsed


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AIService:
    @staticmethod
    def checkpoint_count(duration: int) -> int:
        return max(3, min(8, int(duration) // 10))

    @staticmethod
    def generate_route(city: str, theme: str, duration: int, difficulty: str) -> Dict[str, Any]:
        if difficulty not in DIFFICULTIES:
            raise ServiceError(f'Invalid difficulty: {difficulty}', status_code=400)
        try:
            prompt = AIService.build_route_prompt(city, theme, duration, difficulty)
            response = _complete(ROUTE_SYSTEM_PROMPT, prompt, temperature=0.8, max_tokens=2000)
            route = AIService.parse_route_response(response)
        except Exception as exc:
            current_app.logger.exception(f"[ai] route generation failed city={city!r} theme={theme!r}: {exc}")
            raise ServiceError('Failed to generate route with AI', status_code=502) from exc
        current_app.logger.info(f"[ai] generated route name={route['name']!r} checkpoints={len(route['checkpoints'])}")
        return route

    @staticmethod
    def build_route_prompt(city: str, theme: str, duration: int, difficulty: str) -> str:
        count = AIService.checkpoint_count(duration)
        return f"""
Create a location-based gaming route for {city} with a {theme} theme.

Requirements:
- Duration: {duration} minutes
- Difficulty: {difficulty}
- Number of checkpoints: {count}
- Each checkpoint should be a real, accessible location in {city}

For each checkpoint, provide:
1. Name (attractive, descriptive)
2. Description (what makes this location special)
3. Approximate coordinates (latitude, longitude)
4. Challenge type and details:
   - Trivia: question, correct answer, 3 wrong options, hint
   - Word puzzle: puzzle description, answer, hint
   - Photo proof: what the player needs to photograph, hint
5. Points value ({POINT_RANGES[difficulty]})

Format your response as JSON with this structure:
{{
  "name": "Route Name",
  "description": "Route description",
  "checkpoints": [
    {{
      "name": "Checkpoint Name",
      "description": "Checkpoint description",
      "latitude": 37.7749,
      "longitude": -122.4194,
      "challenge": {{
        "type": "trivia|word_puzzle|photo_proof",
        "question": "Question text (for trivia)",
        "answer": "Correct answer",
        "options": ["Option 1", "Option 2", "Option 3", "Option 4"],
        "hint": "Helpful hint",
        "photoPrompt": "What to photograph (for photo_proof)"
      }},
      "points": 20
    }}
  ]
}}

Make sure the route flows logically and includes diverse challenge types. Focus on {theme} theme throughout.
""".strip()

    @staticmethod
    def parse_route_response(response: str) -> Dict[str, Any]:
        parsed = _extract_json(response)
        if not parsed.get('name') or not parsed.get('description') or not isinstance(parsed.get('checkpoints'), list):
            raise AIGenerationError('Invalid route structure from AI')

        checkpoints = []
        for index, checkpoint in enumerate(parsed['checkpoints']):
            if not isinstance(checkpoint, dict):
                raise AIGenerationError('Invalid checkpoint structure from AI')
            if (not checkpoint.get('name') or not checkpoint.get('description')
                    or not _is_number(checkpoint.get('latitude'))
                    or not _is_number(checkpoint.get('longitude'))
                    or not isinstance(checkpoint.get('challenge'), dict)
                    or not checkpoint.get('points')):
                raise AIGenerationError('Invalid checkpoint structure from AI')
            challenge = checkpoint['challenge']
            options = challenge.get('options')
            checkpoints.append({
                'name': checkpoint['name'],
                'description': checkpoint['description'],
                'latitude': float(checkpoint['latitude']),
                'longitude': float(checkpoint['longitude']),
                'order_index': index,
                'points': int(checkpoint['points']),
                'challenge': {
                    'type': challenge.get('type'),
                    'question': challenge.get('question'),
                    'answer': challenge.get('answer'),
                    'options': options if isinstance(options, list) else None,
                    'hint': challenge.get('hint'),
                    'photo_prompt': challenge.get('photoPrompt') or challenge.get('photo_prompt'),
                },
            })
        return {
            'name': parsed['name'],
            'description': parsed['description'],
            'checkpoints': checkpoints,
        }

    @staticmethod
    def generate_challenge(location: str, theme: str, challenge_type: str) -> Dict[str, Any]:
        if challenge_type not in CHALLENGE_TYPES:
            raise ServiceError(f'Unknown challenge type: {challenge_type}', status_code=400)
        try:
            prompt = AIService.build_challenge_prompt(location, theme, challenge_type)
            response = _complete(CHALLENGE_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=500)
            return AIService.parse_challenge_response(response, challenge_type)
        except Exception as exc:
            current_app.logger.exception(f"[ai] challenge generation failed location={location!r}: {exc}")
            raise ServiceError('Failed to generate challenge with AI', status_code=502) from exc

    @staticmethod
    def build_challenge_prompt(location: str, theme: str, challenge_type: str) -> str:
        base = f"Create a {challenge_type} challenge for a location-based game at {location} with a {theme} theme."
        if challenge_type == 'trivia':
            return f"""{base}

Create a trivia question about this location or the {theme} theme. Include:
- A clear, engaging question
- The correct answer
- 3 plausible wrong answers
- A helpful hint

Format as JSON:
{{
  "question": "Question text",
  "answer": "Correct answer",
  "options": ["Correct answer", "Wrong 1", "Wrong 2", "Wrong 3"],
  "hint": "Helpful hint"
}}"""
        if challenge_type == 'word_puzzle':
            return f"""{base}

Create a word puzzle related to this location or the {theme} theme. Include:
- Puzzle description (anagram, crossword clue, etc.)
- The answer
- A helpful hint

Format as JSON:
{{
  "question": "Puzzle description",
  "answer": "Answer",
  "hint": "Helpful hint"
}}"""
        return f"""{base}

Create a photo challenge where players must photograph something specific at this location. Include:
- What they need to photograph
- A helpful hint about where to find it

Format as JSON:
{{
  "photoPrompt": "What to photograph",
  "hint": "Helpful hint"
}}"""

    @staticmethod
    def parse_challenge_response(response: str, challenge_type: str) -> Dict[str, Optional[Any]]:
        parsed = _extract_json(response)
        challenge: Dict[str, Optional[Any]] = {'type': challenge_type}
        if challenge_type == 'trivia':
            challenge.update(
                question=parsed.get('question'),
                answer=parsed.get('answer'),
                options=parsed.get('options'),
                hint=parsed.get('hint'),
            )
        elif challenge_type == 'word_puzzle':
            challenge.update(
                question=parsed.get('question'),
                answer=parsed.get('answer'),
                hint=parsed.get('hint'),
            )
        else:
            challenge.update(
                photo_prompt=parsed.get('photoPrompt') or parsed.get('photo_prompt'),
                hint=parsed.get('hint'),
            )
        return challenge
