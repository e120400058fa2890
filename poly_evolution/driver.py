"""
poly_evolution/driver.py - Single-lineage hill climbing

The driver owns one champion genome. Each generation clones it, mutates the
clone, scores it and keeps it only if it is strictly better. The loop never
finishes on its own; it runs until stop() or a generation limit.
"""
import logging
import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .config import EvolutionConfig
from .errors import ConfigError, DriverStateError
from .fitness import FitnessEvaluator
from .genome import Genome
from .mutation import Mutator
from .rasterizer import Rasterizer

logger = logging.getLogger(__name__)


class DriverState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPED = 'stopped'


@dataclass(frozen=True)
class ProgressEvent:
    """Reported to listeners after every generation"""
    generation: int
    best_fitness: int
    champion_changed: bool


ProgressListener = Callable[[ProgressEvent], None]


class HillClimber:
    """Clone, mutate, evaluate, keep if strictly better, repeat"""

    def __init__(self, target: np.ndarray, config: EvolutionConfig,
                 rasterizer: Optional[Rasterizer] = None, champion: Optional[Genome] = None):
        self.config = config.validate()
        self.rng = random.Random(config.seed)
        self.mutator = Mutator(config, self.rng)
        self.evaluator = FitnessEvaluator(target, config.width, config.height,
                                          rasterizer=rasterizer, workers=config.workers)

        if champion is None:
            self.champion = Genome.from_config(config)
            self._seed_mutation = True
        else:
            self.champion = self._adopt(champion)
            self._seed_mutation = False

        self.generation = 0
        self.initial_fitness: Optional[int] = None
        self.error: Optional[BaseException] = None

        self._state = DriverState.IDLE
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._listeners: List[ProgressListener] = []

    def _adopt(self, genome: Genome) -> Genome:
        """Rebind a saved genome to this run's bounds"""
        if (genome.width, genome.height) != (self.config.width, self.config.height):
            raise ConfigError(
                f"Champion is {genome.width}x{genome.height}, run is {self.config.width}x{self.config.height}")
        adopted = Genome.from_config(self.config)
        adopted.polygons = [polygon.clone() for polygon in genome.polygons]
        if not adopted.check_invariants():
            raise ConfigError("Champion exceeds max_polygon or max_polygon_points for this run")
        return adopted

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def best_fitness(self) -> Optional[int]:
        return self.champion.fitness

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def current_champion(self) -> Genome:
        """Snapshot of the current champion"""
        with self._lock:
            return self.champion.clone()

    def improvement(self) -> float:
        """Fraction of the initial error removed so far"""
        if not self.initial_fitness or self.champion.fitness is None:
            return 0.0
        return 1.0 - self.champion.fitness / self.initial_fitness

    def _establish_baseline(self) -> None:
        if self._seed_mutation:
            self.mutator.mutate(self.champion)
        self.initial_fitness = self.evaluator.evaluate(self.champion)
        logger.info("Baseline fitness %d with %d polygon(s)", self.initial_fitness, len(self.champion))

    def step(self) -> ProgressEvent:
        """Run one generation; not allowed while the loop is running"""
        if self._state == DriverState.RUNNING:
            raise DriverStateError("Cannot step while the driver is running")
        return self._step()

    def _step(self) -> ProgressEvent:
        if self.initial_fitness is None:
            self._establish_baseline()

        with self._lock:
            parent = self.champion

        child = parent.clone()
        self.mutator.mutate(child)
        child_fitness = self.evaluator.evaluate(child)
        parent_fitness = self.evaluator.evaluate(parent)

        # Ties keep the parent
        changed = child_fitness < parent_fitness
        if changed:
            with self._lock:
                self.champion = child
            logger.debug("Generation %d: new champion %d -> %d", self.generation + 1,
                         parent_fitness, child_fitness)

        self.generation += 1
        event = ProgressEvent(self.generation, min(child_fitness, parent_fitness), changed)
        for listener in self._listeners:
            listener(event)
        return event

    def start(self, generations: Optional[int] = None, block: bool = False) -> None:
        """Begin stepping, on a background thread unless block is set"""
        with self._lock:
            if self._state == DriverState.RUNNING:
                raise DriverStateError("Driver is already running")
            self._state = DriverState.RUNNING
        self._stop_requested.clear()
        self.error = None

        try:
            if self.initial_fitness is None:
                self._establish_baseline()
        except BaseException:
            self._set_state(DriverState.STOPPED)
            raise

        logger.info("Started at generation %d", self.generation)
        if block:
            self._run(generations)
        else:
            self._thread = threading.Thread(target=self._run_background, args=(generations,),
                                            name='hill-climber', daemon=True)
            self._thread.start()

    def _run(self, generations: Optional[int]) -> None:
        steps = 0
        try:
            # Stop is only looked at between generations
            while not self._stop_requested.is_set():
                if generations is not None and steps >= generations:
                    break
                self._step()
                steps += 1
        finally:
            self._set_state(DriverState.STOPPED)
            logger.info("Stopped at generation %d, best fitness %s", self.generation, self.best_fitness)

    def _run_background(self, generations: Optional[int]) -> None:
        try:
            self._run(generations)
        except Exception as e:
            logger.exception("Hill climber failed at generation %d", self.generation)
            self.error = e

    def _set_state(self, state: DriverState) -> None:
        with self._lock:
            self._state = state

    def stop(self, wait: bool = True) -> None:
        """Request a stop; the generation in flight runs to completion"""
        self._stop_requested.set()
        if self._state == DriverState.IDLE:
            self._set_state(DriverState.STOPPED)
        if wait:
            self.wait()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background loop, re-raising anything it failed with"""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                return False
        if self.error is not None:
            # Reported once
            error, self.error = self.error, None
            raise error
        return True

    def close(self) -> None:
        try:
            self.stop()
        finally:
            self.evaluator.close()

    def __enter__(self) -> 'HillClimber':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
