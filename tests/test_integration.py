"""
Integration tests against a real UCI engine.

These tests require an engine binary (UCI_ENGINE_PATH, default "stockfish").
They are skipped by default and can be run with: pytest --integration
"""

import chess
import pytest

from uci_analysis import (
    AnalysisScheduler,
    CandidateMove,
    EngineConfig,
    EngineSession,
    SchedulerConfig,
    SessionState,
)

from conftest import MATE_IN_1_FEN, MIDDLEGAME_FEN, PROMOTION_FEN, STARTING_FEN


@pytest.mark.integration
class TestEngineIntegration:
    """Integration tests for the full request path with a real engine."""

    @pytest.fixture
    def scheduler(self, engine_available: bool) -> AnalysisScheduler:
        """Create a scheduler over a real engine session."""
        if not engine_available:
            pytest.skip("UCI engine binary not available")
        session = EngineSession(EngineConfig(threads=1, hash_mb=16))
        session.start()
        scheduler = AnalysisScheduler(session, SchedulerConfig())
        yield scheduler
        scheduler.shutdown()

    def test_best_move_end_to_end(self, scheduler: AnalysisScheduler) -> None:
        """Mate-in-one position yields exactly one legal candidate."""
        result = scheduler.request_best_moves(MATE_IN_1_FEN, 1, 2000).result(timeout=30)

        assert len(result) == 1
        candidate = result[0]
        assert isinstance(candidate, CandidateMove)
        assert candidate.move.to_chess() in chess.Board(MATE_IN_1_FEN).legal_moves
        assert candidate.time_ms >= 0
        assert candidate.move.san == "Qh4#"

    def test_multiple_lines(self, scheduler: AnalysisScheduler) -> None:
        """MultiPV returns distinct legal moves in rank order."""
        result = scheduler.request_best_moves(STARTING_FEN, 3, 500).result(timeout=30)

        assert len(result) == 3
        assert len({candidate.move.uci() for candidate in result}) == 3

    def test_promotion_position(self, scheduler: AnalysisScheduler) -> None:
        candidate = scheduler.request_best_move(PROMOTION_FEN, 1000).result(timeout=30)
        assert candidate.move.san

    def test_concurrent_requests(self, scheduler: AnalysisScheduler) -> None:
        """Requests issued together are all answered."""
        futures = [
            scheduler.request_best_moves(fen, 2, 400)
            for fen in (STARTING_FEN, MIDDLEGAME_FEN, MATE_IN_1_FEN)
        ]

        for future, fen in zip(futures, (STARTING_FEN, MIDDLEGAME_FEN, MATE_IN_1_FEN)):
            result = future.result(timeout=30)
            assert result.fen == fen
            assert result.move_time_ms >= 250
            board = chess.Board(fen)
            for candidate in result:
                assert candidate.move.to_chess() in board.legal_moves

    def test_engine_version(self, scheduler: AnalysisScheduler) -> None:
        """Engine reports a name during the handshake."""
        assert scheduler.health_check()["version"] != "not started"

    def test_limited_strength(self, scheduler: AnalysisScheduler) -> None:
        scheduler.set_options(elo=1500)
        scheduler.new_game()
        assert scheduler.request_best_move(STARTING_FEN, 300).result(timeout=30)

    def test_stop_transitions_state(self, scheduler: AnalysisScheduler) -> None:
        session = scheduler.session
        session.stop()

        assert session.state is SessionState.STOPPED
        session.stop()  # Should not raise
