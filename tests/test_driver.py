"""Tests for the hill-climbing driver."""

import time

import pytest

from poly_evolution.config import EvolutionConfig
from poly_evolution.driver import DriverState, HillClimber
from poly_evolution.errors import ConfigError, DriverStateError
from poly_evolution.genome import Genome
from poly_evolution.shapes import Color, Point, Polygon

from .conftest import ConstantRasterizer


def wait_for(predicate, timeout=10.0):
    deadline = time.time() + timeout
    while not predicate() and time.time() < deadline:
        time.sleep(0.005)
    return predicate()


class TestConstruction:
    """Configuration is checked before anything runs."""

    def test_rejects_bad_config(self, black_target):
        config = EvolutionConfig(width=16, height=12, max_polygon_points=2)
        with pytest.raises(ConfigError):
            HillClimber(black_target, config)

    def test_initial_state(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        assert climber.state == DriverState.IDLE
        assert climber.generation == 0
        assert climber.initial_fitness is None
        assert len(climber.champion) == 0

    def test_resume_size_mismatch(self, config, gradient_target):
        other = Genome(8, 6, config.width + 1, config.height)
        with pytest.raises(ConfigError):
            HillClimber(gradient_target, config, champion=other)

    def test_resume_over_capacity(self, config, gradient_target, triangle):
        big = Genome(100, 6, config.width, config.height)
        big.polygons = [triangle.clone() for _ in range(config.max_polygon + 1)]
        with pytest.raises(ConfigError):
            HillClimber(gradient_target, config, champion=big)


class TestStepping:
    """Generation semantics."""

    def test_step_establishes_baseline(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        event = climber.step()
        assert climber.initial_fitness is not None
        assert event.generation == 1
        assert event.best_fitness <= climber.initial_fitness

    def test_fitness_never_increases(self, config, gradient_target):
        """Test the champion's fitness is non-increasing across generations."""
        events = []
        climber = HillClimber(gradient_target, config)
        climber.add_listener(events.append)
        climber.start(generations=150, block=True)

        assert [e.generation for e in events] == list(range(1, 151))
        best = [e.best_fitness for e in events]
        assert all(later <= earlier for earlier, later in zip(best, best[1:]))
        assert climber.best_fitness == best[-1]
        assert best[-1] <= climber.initial_fitness

    def test_champion_changes_only_on_strict_improvement(self, config, gradient_target):
        events = []
        climber = HillClimber(gradient_target, config)
        climber.add_listener(events.append)
        climber.start(generations=100, block=True)

        previous = climber.initial_fitness
        for event in events:
            if event.champion_changed:
                assert event.best_fitness < previous
            else:
                assert event.best_fitness == previous
            previous = event.best_fitness

    def test_ties_keep_the_champion(self, config, gradient_target):
        """Test equal fitness never replaces the champion."""
        climber = HillClimber(gradient_target, config, rasterizer=ConstantRasterizer())
        climber.start(generations=0, block=True)
        champion = climber.champion

        for _ in range(25):
            event = climber.step()
            assert not event.champion_changed
        assert climber.champion is champion

    def test_invariants_after_run(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        climber.start(generations=200, block=True)
        assert climber.current_champion().check_invariants()

    def test_seeded_runs_match(self, config, gradient_target):
        a = HillClimber(gradient_target, config)
        b = HillClimber(gradient_target, config)
        a.start(generations=60, block=True)
        b.start(generations=60, block=True)
        assert a.best_fitness == b.best_fitness
        assert a.champion.polygons == b.champion.polygons

    def test_improvement(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        assert climber.improvement() == 0.0
        climber.start(generations=100, block=True)
        assert 0.0 <= climber.improvement() <= 1.0

    def test_current_champion_is_a_snapshot(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        climber.start(generations=10, block=True)
        snapshot = climber.current_champion()
        assert snapshot is not climber.champion
        assert snapshot.polygons == climber.champion.polygons
        snapshot.polygons.clear()
        assert len(climber.champion) > 0

    def test_resumed_champion_is_not_seed_mutated(self, config, gradient_target):
        saved = Genome.from_config(config)
        saved.polygons.append(Polygon([Point(0, 0), Point(15, 0), Point(15, 11)], Color(200, 0, 0, 0.7)))
        saved.fitness = 1  # stale score from another run

        climber = HillClimber(gradient_target, config, champion=saved)
        climber.start(generations=0, block=True)
        assert climber.champion.polygons == saved.polygons
        assert climber.initial_fitness != 1
        fresh = Genome.from_config(config)
        fresh.polygons = [p.clone() for p in saved.polygons]
        assert climber.initial_fitness == climber.evaluator.evaluate(fresh)


class TestControl:
    """Start, stop and background running."""

    def test_background_run_and_stop(self, config, gradient_target):
        with HillClimber(gradient_target, config) as climber:
            climber.start()
            assert climber.state == DriverState.RUNNING
            assert wait_for(lambda: climber.generation >= 5)

            climber.stop()
            assert climber.state == DriverState.STOPPED
            stopped_at = climber.generation
            time.sleep(0.05)
            assert climber.generation == stopped_at

    def test_generation_limit_stops(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        climber.start(generations=12)
        assert climber.wait(timeout=30)
        assert climber.generation == 12
        assert climber.state == DriverState.STOPPED

    def test_cannot_start_twice(self, config, gradient_target):
        with HillClimber(gradient_target, config) as climber:
            climber.start()
            with pytest.raises(DriverStateError):
                climber.start()

    def test_restart_continues(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        climber.start(generations=5, block=True)
        baseline = climber.initial_fitness
        climber.start(generations=5, block=True)
        assert climber.generation == 10
        assert climber.initial_fitness == baseline

    def test_stop_while_idle(self, config, gradient_target):
        climber = HillClimber(gradient_target, config)
        climber.stop()
        assert climber.state == DriverState.STOPPED
        assert climber.generation == 0

    def test_background_error_is_reraised(self, config, gradient_target):
        def explode(event):
            raise RuntimeError("listener failed")

        climber = HillClimber(gradient_target, config)
        climber.add_listener(explode)
        climber.start()
        with pytest.raises(RuntimeError, match="listener failed"):
            climber.wait(timeout=30)
        assert climber.state == DriverState.STOPPED

    def test_error_is_reported_once(self, config, gradient_target):
        def explode(event):
            raise RuntimeError("listener failed")

        climber = HillClimber(gradient_target, config)
        climber.add_listener(explode)
        climber.start()
        with pytest.raises(RuntimeError):
            climber.wait(timeout=30)
        assert climber.wait(timeout=30)
        climber.close()

    def test_close_releases_pool_after_failure(self, gradient_target):
        """Test the evaluator's worker pool is shut down even when the loop failed."""
        config = EvolutionConfig(width=16, height=12, max_polygon=8, max_polygon_points=6,
                                 workers=2, seed=5)

        def explode(event):
            raise RuntimeError("listener failed")

        climber = HillClimber(gradient_target, config)
        assert climber.evaluator.executor is not None
        climber.add_listener(explode)
        climber.start()
        assert wait_for(lambda: climber.state == DriverState.STOPPED)

        with pytest.raises(RuntimeError):
            climber.close()
        assert climber.evaluator.executor is None

    def test_step_rejected_while_running(self, config, gradient_target):
        """Test only the loop advances the champion while running."""
        with HillClimber(gradient_target, config) as climber:
            climber.start()
            with pytest.raises(DriverStateError):
                climber.step()
            climber.stop()

            generation = climber.generation
            climber.step()
            assert climber.generation == generation + 1
