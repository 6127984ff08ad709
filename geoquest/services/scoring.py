from typing import Any, Dict, List

from flask import current_app

from .database import DatabaseService
from .errors import ServiceError
from .validation import round_half_up

TIME_BONUS_RATIO = 0.1
STREAK_BONUS_STEP = 0.05
MAX_STREAK_MULTIPLIER = 1.5
# Fixed shares used for the per-player breakdown display
BREAKDOWN_TIME_RATIO = 0.1
BREAKDOWN_STREAK_RATIO = 0.2
BREAKDOWN_DIFFICULTY_RATIO = 0.15


def _minutes(delta) -> float:
    return delta.total_seconds() / 60.0


class ScoringService:
    @staticmethod
    def calculate_room_results(room_id: str) -> Dict[str, Any]:
        """Aggregate a room's submissions into ranked player scores.

        Only correct submissions earn points; a checkpoint counts as
        completed once the player has a correct submission for it.
        """
        room = DatabaseService.get_room(room_id)
        if not room:
            raise ServiceError('Room not found', status_code=404)
        route = DatabaseService.get_route(room.route_id)
        if not route:
            raise ServiceError('Route not found', status_code=404)

        checkpoints = DatabaseService.get_checkpoints_by_route(route.id)
        total_checkpoints = len(checkpoints)
        total_possible_points = sum(cp.points or 0 for cp in checkpoints)
        submissions = DatabaseService.get_submissions_by_room(room.id)
        player_ids = room.players

        player_scores: List[Dict[str, Any]] = []
        for join_order, player_id in enumerate(player_ids):
            player = DatabaseService.get_user(player_id)
            if not player:
                continue
            player_submissions = [s for s in submissions if s.player_id == player.id]
            correct = [s for s in player_submissions if s.is_correct]
            completed = len({s.checkpoint_id for s in correct})
            total_points = sum(s.points or 0 for s in correct)
            completion_rate = (completed / total_checkpoints) * 100 if total_checkpoints else 0
            player_scores.append({
                'player_id': player.id,
                'username': player.username,
                'total_points': total_points,
                'completed_checkpoints': completed,
                'total_checkpoints': total_checkpoints,
                'completion_rate': completion_rate,
                'average_time_per_checkpoint': ScoringService.calculate_average_time(room, player_submissions),
                'rank': 0,
                'submissions': [s.to_dict() for s in player_submissions],
                '_join_order': join_order,
            })

        player_scores.sort(key=lambda s: (-s['total_points'], -s['completed_checkpoints'], s['_join_order']))
        for index, score in enumerate(player_scores):
            score['rank'] = index + 1
            score.pop('_join_order')

        game_duration = 0
        if room.started_at and room.completed_at:
            game_duration = round_half_up(_minutes(room.completed_at - room.started_at))

        return {
            'room_id': room.id,
            'route_id': route.id,
            'route_name': route.name,
            'status': room.status,
            'total_players': len(player_ids),
            'game_duration': game_duration,
            'total_possible_points': total_possible_points,
            'player_scores': player_scores,
            'game_stats': ScoringService.calculate_game_stats(player_scores),
        }

    @staticmethod
    def calculate_average_time(room, submissions) -> float:
        """Minutes per completed checkpoint, measured from the room start."""
        correct = sorted((s for s in submissions if s.is_correct), key=lambda s: s.submitted_at)
        completed = len({s.checkpoint_id for s in correct})
        if not completed:
            return 0
        start = room.started_at or min(s.submitted_at for s in submissions)
        elapsed = _minutes(correct[-1].submitted_at - start)
        return round(max(elapsed, 0) / completed, 2)

    @staticmethod
    def calculate_game_stats(player_scores: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not player_scores:
            return {
                'average_completion_rate': 0,
                'average_score': 0,
                'fastest_completion': 0,
                'most_points': 0,
            }
        count = len(player_scores)
        average_completion_rate = sum(s['completion_rate'] for s in player_scores) / count
        average_score = sum(s['total_points'] for s in player_scores) / count
        timed = [s['average_time_per_checkpoint'] for s in player_scores if s['average_time_per_checkpoint'] > 0]
        fastest = min(timed) if timed else 0
        return {
            'average_completion_rate': round(average_completion_rate, 2),
            'average_score': round(average_score, 2),
            'fastest_completion': round(fastest, 2),
            'most_points': max(s['total_points'] for s in player_scores),
        }

    @staticmethod
    def update_player_stats(player_id: str, player_score: Dict[str, Any]):
        user = DatabaseService.get_user(player_id)
        if not user:
            raise ServiceError('User not found', status_code=404)
        updated = DatabaseService.update_user(
            player_id,
            total_points=(user.total_points or 0) + int(player_score.get('total_points', 0)),
            games_played=(user.games_played or 0) + 1,
        )
        current_app.logger.info(
            f"[stats] player={player_id} total_points={updated.total_points} games_played={updated.games_played}"
        )
        return updated

    @staticmethod
    def get_player_leaderboard(limit: int = 10) -> List[Dict[str, Any]]:
        leaderboard = DatabaseService.get_leaderboard(limit)
        return [
            {
                'player_id': entry['user'].id,
                'username': entry['user'].username,
                'total_points': entry['total_points'],
                'games_played': entry['games_played'],
                'average_score': round(entry['average_score'], 2),
                'rank': index + 1,
            }
            for index, entry in enumerate(leaderboard)
        ]

    @staticmethod
    def calculate_bonus_points(base_points: float, time_bonus: bool, streak_bonus: int,
                               difficulty_multiplier: float) -> int:
        bonus_points = base_points
        if time_bonus:
            bonus_points += base_points * TIME_BONUS_RATIO
        # 5% per consecutive correct answer, capped at 50%
        bonus_points *= min(1 + streak_bonus * STREAK_BONUS_STEP, MAX_STREAK_MULTIPLIER)
        bonus_points *= difficulty_multiplier
        return round_half_up(bonus_points)

    @staticmethod
    def generate_score_breakdown(player_score: Dict[str, Any]) -> Dict[str, Any]:
        base_points = sum(
            s['points'] for s in player_score.get('submissions', []) if s.get('is_correct')
        )
        return {
            'base_points': base_points,
            'time_bonus': base_points * BREAKDOWN_TIME_RATIO,
            'streak_bonus': base_points * BREAKDOWN_STREAK_RATIO,
            'difficulty_bonus': base_points * BREAKDOWN_DIFFICULTY_RATIO,
            'total_points': player_score.get('total_points', 0),
        }
