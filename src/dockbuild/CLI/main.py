"""
Command Line Interface for dockbuild.
"""
import os
from typing import Dict, List, Sequence

import click

from ..ACCESS.engine import DockerEngineClient
from ..ACCESS.query_service import QueryService
from ..ARCHIVE.archive_service import ArchiveService
from ..BUILDERS.build_args import parse_build_arg
from ..BUILDERS.build_service import BuildService
from ..MODELS.build_config import BuildParameters, CleanupMode, ImageConfiguration
from ..PARSERS.env_parser import EnvParser
from ..PARSERS.image_config_parser import ImageConfigParser
from ..REGISTRY.image_name import validate
from ..UTILS.logging_setup import configure_logging
from ..exceptions import ConfigurationError, DockBuildError, InvalidImageNameError


@click.group()
@click.option('--file', '-f', default='dockbuild.yml', help='Image configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Show debug output, including engine build output')
@click.pass_context
def cli(ctx, file, verbose):
    """
    dockbuild - build Docker images from a declarative configuration.

    Rebuilt images replace their previous version, which is removed
    according to each image's cleanup mode.
    """
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    ctx.obj['base_dir'] = os.path.dirname(os.path.abspath(file))
    configure_logging(verbose)


def _load_images(ctx) -> List[ImageConfiguration]:
    file = ctx.obj['file']
    if not os.path.exists(file):
        raise ConfigurationError(f"{file} not found.")
    return ImageConfigParser().parse(file)


def _select(images: List[ImageConfiguration], selectors: Sequence[str]) -> List[ImageConfiguration]:
    if not selectors:
        return images
    for selector in selectors:
        if not any(image.matches(selector) for image in images):
            raise ConfigurationError(f"No image named '{selector}' is configured")
    return [image for image in images if any(image.matches(s) for s in selectors)]


def _caller_args(build_arg_file, build_args) -> Dict[str, str]:
    args = {}
    if build_arg_file:
        args.update(EnvParser.parse(build_arg_file))
    for text in build_args:
        key, value = parse_build_arg(text)
        args[key] = value
    return args


@cli.command()
@click.argument('images', nargs=-1)
@click.option('--no-cache', is_flag=True, envvar='DOCKBUILD_NO_CACHE', help='Do not use the build cache')
@click.option('--build-arg', '-b', 'build_args', multiple=True, metavar='KEY=VALUE',
              help='Build argument, overrides the configured one (repeatable)')
@click.option('--build-arg-file', type=click.Path(dir_okay=False), help='.env file with build arguments')
@click.option('--cleanup', type=click.Choice(['none', 'try', 'remove'], case_sensitive=False),
              envvar='DOCKBUILD_CLEANUP', help='Cleanup mode for every image')
@click.option('--output-dir', default='target/docker', show_default=True,
              help='Where build archives are written, relative to the configuration file')
@click.option('--timeout', type=int, default=None, help='Docker client timeout in seconds')
@click.pass_context
def build(ctx, images, no_cache, build_args, build_arg_file, cleanup, output_dir, timeout):
    """Build the configured images (all of them, or the named ones)."""
    try:
        selected = _select(_load_images(ctx), images)
        caller_args = _caller_args(build_arg_file, build_args)
        params = BuildParameters(base_dir=ctx.obj['base_dir'], output_dir=output_dir)

        engine = ctx.obj.get('engine') or DockerEngineClient.from_env(timeout=timeout)
        service = BuildService(engine, QueryService(engine), ArchiveService())

        for image in selected:
            if image.build is None or image.build.skip:
                click.echo(f"{image.get_description()}: Skipped")
                continue
            if cleanup:
                build_config = image.build.model_copy(update={'cleanup': CleanupMode.parse(cleanup)})
                image = image.model_copy(update={'build': build_config})
            service.build_image(image, params, no_cache or image.build.nocache, caller_args)
    except DockBuildError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@cli.command()
@click.pass_context
def check(ctx):
    """Validate the configured image names."""
    try:
        images = _load_images(ctx)
    except DockBuildError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    failed = False
    for image in images:
        try:
            validate(image.name)
            click.echo(f"{image.name}: ok")
        except InvalidImageNameError as e:
            failed = True
            click.echo(f"{image.name}: {e}")
    if failed:
        ctx.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
