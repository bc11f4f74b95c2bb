"""Click CLI commands for citymesh."""

import logging

import click

from .builder import CityBuilder
from .errors import CityMeshError
from .glb import export_glb
from .models import GenerationConfig
from .overpass import OverpassClient

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """citymesh CLI for generating 3D city meshes from OpenStreetMap data."""
    pass


@cli.command()
@click.argument('lat', type=float)
@click.argument('lon', type=float)
@click.argument('radius', type=float)
@click.option('--output', '-o', default='map.osm', help='Output OSM XML file path')
def fetch(lat: float, lon: float, radius: float, output: str):
    """Download the OSM document around a point."""
    try:
        text = OverpassClient().fetch(lat, lon, radius)
    except CityMeshError as e:
        logger.error(f"Error fetching map data: {e}")
        raise click.ClickException(str(e))
    with open(output, 'w', encoding='utf-8') as f:
        f.write(text)
    click.echo(f"Wrote {len(text)} characters to {output}")


@cli.command()
@click.argument('lat', type=float)
@click.argument('lon', type=float)
@click.argument('radius', type=float)
@click.option('--input', '-i', 'input_path', type=click.Path(exists=True, dir_okay=False),
              default=None, help='Read a saved OSM document instead of downloading')
@click.option('--output', '-o', default='city.glb', help='Output GLB file path')
@click.option('--seed', type=int, default=None, help='Seed for reproducible output')
@click.option('--trees', type=int, default=0, help='Number of tree placements to try')
@click.option('--no-platform', is_flag=True, help='Skip the base platform')
def generate(lat: float, lon: float, radius: float, input_path, output: str,
             seed, trees: int, no_platform: bool):
    """Generate a GLB city mesh for a disk around a point."""
    config = GenerationConfig(lat=lat, lon=lon, radius=radius, seed=seed,
                              tree_count=trees, platform=not no_platform)
    builder = CityBuilder(config)
    try:
        document = None
        if input_path:
            with open(input_path, 'rb') as f:
                document = f.read()
        buffers = builder.generate(document, show_progress=True)
        if not buffers:
            raise click.ClickException("No features produced any geometry")
        export_glb(buffers, output, materials=builder.session.materials)
    except (CityMeshError, ValueError) as e:
        logger.error(f"Error generating city mesh: {e}")
        raise click.ClickException(str(e))

    click.echo(f"Generated {len(buffers)} meshes (seed {builder.seed}) -> {output}")
