"""Answer checking for checkpoint challenges.

Trivia answers must match exactly (ignoring case and surrounding
whitespace). Word puzzles are forgiving: an answer within a Levenshtein
similarity threshold of the solution counts. Photo challenges pass as
soon as a photo has been uploaded.
"""

import math
from typing import Any, Dict, Optional

from flask import current_app, has_app_context

QUICK_ANSWER_SEC = 30
SLOW_ANSWER_SEC = 120
MAX_TIME_BONUS_RATIO = 0.2


def _threshold(key: str, default: float) -> float:
    if has_app_context():
        try:
            return float(current_app.config.get(key, default))
        except (TypeError, ValueError):
            return default
    return default


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ValidationService:
    @staticmethod
    def validate_submission(challenge: Dict[str, Any], answer: Optional[str] = None,
                            photo_url: Optional[str] = None) -> Dict[str, Any]:
        challenge_type = (challenge or {}).get('type')
        if challenge_type == 'trivia':
            return ValidationService.validate_trivia(challenge, answer or '')
        if challenge_type == 'word_puzzle':
            return ValidationService.validate_word_puzzle(challenge, answer or '')
        if challenge_type == 'photo_proof':
            return ValidationService.validate_photo_proof(challenge, photo_url)
        return {
            'is_correct': False,
            'score': 0,
            'feedback': 'Unknown challenge type',
            'details': None,
        }

    @staticmethod
    def validate_trivia(challenge: Dict[str, Any], answer: str) -> Dict[str, Any]:
        expected = challenge.get('answer')
        correct_answer = (expected or '').strip().lower()
        user_answer = (answer or '').strip().lower()
        is_correct = bool(correct_answer) and correct_answer == user_answer
        return {
            'is_correct': is_correct,
            'score': 100 if is_correct else 0,
            'feedback': 'Correct! Well done!' if is_correct
            else f'Incorrect. The correct answer was: {expected}',
            'details': {
                'correct_answer': expected,
                'user_answer': answer,
            },
        }

    @staticmethod
    def validate_word_puzzle(challenge: Dict[str, Any], answer: str) -> Dict[str, Any]:
        expected = challenge.get('answer')
        correct_answer = (expected or '').strip().lower()
        user_answer = (answer or '').strip().lower()
        threshold = _threshold('FUZZY_MATCH_THRESHOLD', 0.9)
        near_miss_threshold = _threshold('NEAR_MISS_THRESHOLD', 0.8)

        is_correct = bool(correct_answer) and bool(user_answer) and \
            ValidationService.fuzzy_match(correct_answer, user_answer, threshold)
        near_miss = (not is_correct and bool(correct_answer) and bool(user_answer)
                     and ValidationService.fuzzy_match(correct_answer, user_answer, near_miss_threshold))
        return {
            'is_correct': is_correct,
            'score': 100 if is_correct else 0,
            'feedback': 'Correct! Great job!' if is_correct
            else f'Incorrect. The answer was: {expected}',
            'details': {
                'correct_answer': expected,
                'user_answer': answer,
                'fuzzy_match': near_miss,
            },
        }

    @staticmethod
    def validate_photo_proof(challenge: Dict[str, Any], photo_url: Optional[str]) -> Dict[str, Any]:
        has_photo = bool(photo_url)
        return {
            'is_correct': has_photo,
            'score': 100 if has_photo else 0,
            'feedback': 'Photo submitted successfully!' if has_photo
            else 'Please upload a photo to complete this challenge',
            'details': {
                'has_photo': has_photo,
                'photo_url': photo_url,
            },
        }

    @staticmethod
    def fuzzy_match(str1: str, str2: str, threshold: float = 0.9) -> bool:
        if str1 == str2:
            return True
        longer, shorter = (str1, str2) if len(str1) > len(str2) else (str2, str1)
        if len(longer) == 0:
            return True
        distance = ValidationService.levenshtein_distance(longer, shorter)
        similarity = (len(longer) - distance) / len(longer)
        return similarity >= threshold

    @staticmethod
    def levenshtein_distance(str1: str, str2: str) -> int:
        previous = list(range(len(str1) + 1))
        for j in range(1, len(str2) + 1):
            current = [j] + [0] * len(str1)
            for i in range(1, len(str1) + 1):
                cost = 0 if str1[i - 1] == str2[j - 1] else 1
                current[i] = min(
                    current[i - 1] + 1,      # deletion
                    previous[i] + 1,         # insertion
                    previous[i - 1] + cost,  # substitution
                )
            previous = current
        return previous[len(str1)]

    @staticmethod
    def calculate_score(points: int, result: Dict[str, Any], time_bonus: float = 0) -> int:
        base_score = points or 0
        validation_score = (result.get('score', 0) / 100) * base_score
        bonus = min(time_bonus, base_score * MAX_TIME_BONUS_RATIO) if time_bonus > 0 else 0
        return round_half_up(validation_score + bonus)

    @staticmethod
    def generate_feedback(result: Dict[str, Any], time_taken: Optional[float]) -> str:
        feedback = result.get('feedback', '')
        if not result.get('is_correct') or time_taken is None:
            return feedback
        if time_taken < QUICK_ANSWER_SEC:
            feedback += ' Quick thinking!'
        elif time_taken > SLOW_ANSWER_SEC:
            feedback += ' Took your time, but got it right!'
        return feedback
