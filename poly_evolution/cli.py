"""
poly_evolution/cli.py - Command-line interface
"""
import logging
import os
import time

import click

from .config import EvolutionConfig, SelectionMode, RecolorMode, OPERATOR_NAMES
from .driver import HillClimber
from .errors import EvolutionError
from .fitness import FitnessEvaluator
from .genome import Genome
from .rasterizer import PillowRasterizer, load_target, save_buffer


def _parse_probabilities(values):
    probabilities = {}
    for item in values:
        name, sep, value = item.partition('=')
        if not sep:
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint='--probability')
        name = name.strip().replace('-', '_')
        if name not in OPERATOR_NAMES:
            raise click.BadParameter(f"unknown operator {name!r}, choose from {', '.join(OPERATOR_NAMES)}",
                                     param_hint='--probability')
        try:
            probabilities[name] = float(value)
        except ValueError:
            raise click.BadParameter(f"{value!r} is not a number", param_hint='--probability')
    return probabilities


def _save_champion(climber: HillClimber, out: str) -> None:
    champion = climber.current_champion()
    champion.to_json(os.path.join(out, 'champion.json'))
    rendered = climber.evaluator.render(champion)
    save_buffer(rendered, os.path.join(out, 'champion.png'))


@click.group()
def cli():
    """Poly Evolution - approximate an image with evolving translucent polygons"""
    pass


@cli.command()
@click.argument('target', type=click.Path(exists=True, dir_okay=False))
@click.option('--out', '-o', default='out/', help='Output directory')
@click.option('--generations', '-g', type=int, default=None,
              help='Number of generations to run (default: until interrupted)')
@click.option('--size', type=int, nargs=2, default=None, metavar='W H',
              help='Resize the target before evolving')
@click.option('--max-polygon', default=255, help='Maximum number of polygons')
@click.option('--max-polygon-points', default=10, help='Maximum vertices per polygon')
@click.option('--selection', type=click.Choice([m.value for m in SelectionMode]),
              default=SelectionMode.PER_OPERATOR.value, help='Mutation selection strategy')
@click.option('--recolor', type=click.Choice([m.value for m in RecolorMode]),
              default=RecolorMode.CHANNEL.value, help='Recolor a single channel or the whole color')
@click.option('--probability', '-p', multiple=True, metavar='NAME=VALUE',
              help='Override an operator probability, e.g. add_polygon=0.01')
@click.option('--workers', '-w', default=1, help='Pixel partitions scored concurrently')
@click.option('--seed', type=int, default=None, help='Random seed')
@click.option('--resume', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Start from a saved champion.json')
@click.option('--save-every', default=100, help='Save the champion at most every N generations')
@click.option('--report-every', default=100, help='Print progress every N generations')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def evolve(target, out, generations, size, max_polygon, max_polygon_points, selection, recolor,
           probability, workers, seed, resume, save_every, report_every, verbose):
    """Evolve a polygon genome towards a target image"""

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s %(name)s %(levelname)s %(message)s')

    os.makedirs(out, exist_ok=True)

    try:
        target_data = load_target(target, size=tuple(size) if size else None)
    except OSError as e:
        raise click.ClickException(f"Error loading target image: {e}")
    height, width = target_data.shape[:2]

    try:
        config = EvolutionConfig(
            width=width,
            height=height,
            max_polygon=max_polygon,
            max_polygon_points=max_polygon_points,
            probabilities=_parse_probabilities(probability),
            selection=selection,
            recolor=recolor,
            workers=workers,
            seed=seed,
        )
        champion = Genome.from_json(filename=resume) if resume else None
        climber = HillClimber(target_data, config, champion=champion)
    except EvolutionError as e:
        raise click.ClickException(str(e))

    click.echo(f"Starting evolution: {width}x{height} target, up to {max_polygon} polygons")
    click.echo(f"Selection: {selection}, Recolor: {recolor}, Workers: {workers}, Output: {out}")

    start_time = time.time()
    last_saved = {'generation': 0, 'dirty': False}

    def on_progress(event):
        if event.champion_changed:
            last_saved['dirty'] = True
        if last_saved['dirty'] and event.generation - last_saved['generation'] >= save_every:
            _save_champion(climber, out)
            last_saved['generation'] = event.generation
            last_saved['dirty'] = False

        if verbose or event.generation % report_every == 0:
            champion = climber.champion
            click.echo(f"Gen {event.generation:6d}: "
                       f"Best={event.best_fitness} "
                       f"Improved={climber.improvement() * 100:.2f}% "
                       f"Polygons={len(champion)} "
                       f"Time={time.time() - start_time:.1f}s")

    climber.add_listener(on_progress)

    try:
        climber.start(generations=generations, block=True)
    except KeyboardInterrupt:
        click.echo("\nInterrupted, stopping")
        climber.stop()
    except EvolutionError as e:
        raise click.ClickException(str(e))
    finally:
        climber.evaluator.close()

    _save_champion(climber, out)

    total_time = time.time() - start_time
    click.echo(f"\nEvolution stopped after {climber.generation} generations in {total_time:.1f}s")
    click.echo(f"Initial fitness: {climber.initial_fitness}, Best fitness: {climber.best_fitness}")
    click.echo(f"Champion saved to {os.path.join(out, 'champion.json')}")


@cli.command()
@click.argument('genome', type=click.Path(exists=True, dir_okay=False))
@click.option('--out', '-o', help='Output filename (optional)')
@click.option('--scale', default=1, help='Integer upscaling factor')
def render(genome, out, scale):
    """Render a genome from JSON file"""

    try:
        g = Genome.from_json(filename=genome)
    except (ValueError, KeyError) as e:
        raise click.ClickException(f"Error loading genome: {e}")

    if not out:
        base_name = os.path.splitext(os.path.basename(genome))[0]
        out = f"{base_name}.png"

    rendered = PillowRasterizer().render(g, g.width, g.height)
    save_buffer(rendered, out, scale=scale)
    click.echo(f"Image saved: {out}")


@cli.command()
@click.argument('genome', type=click.Path(exists=True, dir_okay=False))
@click.argument('target', type=click.Path(exists=True, dir_okay=False))
def score(genome, target):
    """Print the fitness of a genome against a target image"""

    try:
        g = Genome.from_json(filename=genome)
        g.invalidate_fitness()
        target_data = load_target(target, size=(g.width, g.height))
        with FitnessEvaluator(target_data, g.width, g.height) as evaluator:
            fitness = evaluator.evaluate(g)
    except (ValueError, KeyError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(fitness)


if __name__ == '__main__':
    cli()
