"""
Command-line interface for tunebridge.

This module implements the CLI using Click, with rich-click for the
output colors.

Commands:
    tunebridge auth                         Authorize with Spotify (browser flow)
    tunebridge import <playlist_url>        Import a playlist into the store
    tunebridge convert                      Convert unconverted tracks to YouTube URLs
    tunebridge convert-track <track_id>     Re-convert one track (overwrites its URL)
    tunebridge stats                        Conversion statistics
    tunebridge playlists [--remote]         Stored (or Spotify account) playlists
    tunebridge show <playlist_id>           Tracks of a stored playlist
    tunebridge search <name>                Find stored tracks by name
    tunebridge add-track <name> <artist>    Add a track by hand

Global options:
    --config <path>     config.yaml to use (default: ./config.yaml, optional)
    --verbose           Show DEBUG messages on the console
    --version           Show version and exit

Exit codes:
    1   Configuration error (or unexpected error)
    2   Track store error
    3   Spotify / authorization error
    4   Other tunebridge error
    130 Interrupted
"""

import sys
from pathlib import Path
from typing import Callable, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Spotify",
            "commands": ["auth", "import", "playlists"],
        },
        {
            "name": "Conversion",
            "commands": ["convert", "convert-track", "stats"],
        },
        {
            "name": "Library",
            "commands": ["show", "search", "add-track"],
        },
    ],
}

from tunebridge import __version__
from tunebridge.core import (
    AuthError,
    Config,
    ConfigError,
    Database,
    SpotifyError,
    StoreError,
    TuneBridgeError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from tunebridge.core.logger import format_converted_message, format_failed_message
from tunebridge.core.progress import ConversionProgressBar
from tunebridge.spotify import (
    PlaylistImporter,
    SpotifyClient,
    TokenManager,
    TokenStore,
    authorize_interactively,
    extract_playlist_id,
)
from tunebridge.youtube import ConversionService, TrackOutcome, create_search_provider

logger = get_logger(__name__)


CommandHandler = Callable[[Config, Database, Optional[TokenManager]], None]


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.version_option(__version__, "--version", prog_name="tunebridge")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """
    tunebridge: Convert Spotify playlists to YouTube links.

    Imports playlists from your Spotify account into a local track store,
    then finds the best matching YouTube video for every track.

    \b
    FIRST RUN:
        tunebridge auth                                          # Authorize Spotify
        tunebridge import "https://open.spotify.com/playlist/..." # Import a playlist
        tunebridge convert                                       # Find YouTube videos

    Without a YouTube API key, a mock search provider is used.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# =============================================================================
# Command Runner
# =============================================================================

def _run_command(ctx: click.Context, handler: CommandHandler, needs_spotify: bool = False) -> None:
    """
    Set up the application, run a command handler and map errors to exit codes.

    Args:
        ctx: Click context holding the global options.
        handler: Called with (config, database, token_manager).
        needs_spotify: Load Spotify tokens and start their background refresh.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    database: Database | None = None
    token_manager: TokenManager | None = None

    try:
        config = _load_configuration(ctx.obj["config_path"])
        setup_logging(config.storage.data_dir, verbose=ctx.obj["verbose"])
        logger.debug(f"tunebridge {__version__}, data in {config.storage.data_dir}")

        database = _initialize_database(config)
        if needs_spotify:
            token_manager = _initialize_token_manager(config)

        handler(config, database, token_manager)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except StoreError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except (SpotifyError, AuthError) as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if isinstance(e, AuthError) and e.needs_reauthorization:
            click.echo("Run 'tunebridge auth' to authorize with Spotify", err=True)
        elif isinstance(e, SpotifyError) and e.is_auth_error:
            click.echo("Access was rejected; try 'tunebridge auth' again", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except TuneBridgeError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if token_manager is not None:
            token_manager.stop()
        if database is not None:
            database.close()
        shutdown_logging()


def _load_configuration(config_path: Optional[Path]) -> Config:
    return load_config(config_path)


def _initialize_database(config: Config) -> Database:
    """
    Open the track store, creating the data directory if needed.

    Raises:
        StoreError: If the database cannot be initialized.
    """
    config.storage.data_dir.mkdir(parents=True, exist_ok=True)
    return Database(config.storage.database_path)


def _initialize_token_manager(config: Config) -> TokenManager:
    token_manager = TokenManager(
        client_id=config.spotify.client_id,
        client_secret=config.spotify.client_secret,
        redirect_uri=config.spotify.redirect_uri,
        token_store=TokenStore(config.storage.tokens_path),
        token_config=config.token,
    )
    token_manager.load()
    token_manager.start_background_tasks()
    return token_manager


def _require_token_manager(token_manager: Optional[TokenManager]) -> TokenManager:
    if token_manager is None:
        raise AuthError("Spotify is not initialized for this command")
    return token_manager


# =============================================================================
# Spotify Commands
# =============================================================================

@cli.command()
@click.pass_context
def auth(ctx: click.Context) -> None:
    """Authorize tunebridge to read your Spotify playlists."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        manager = _require_token_manager(token_manager)
        authorized = authorize_interactively(manager)
        user = SpotifyClient(manager).current_user()
        name = user.get("display_name") or user.get("id", "unknown")
        if authorized:
            logger.info(f"Authorized as {name}")
        else:
            logger.info(f"Already authorized as {name}")

    _run_command(ctx, handler, needs_spotify=True)


@cli.command("import")
@click.argument("playlist_url", metavar="<playlist-url>")
@click.pass_context
def import_playlist(ctx: click.Context, playlist_url: str) -> None:
    """Import a Spotify playlist (URL or spotify:playlist: URI) into the store."""
    try:
        extract_playlist_id(playlist_url)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PLAYLIST_URL") from e

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        importer = PlaylistImporter(SpotifyClient(_require_token_manager(token_manager)), database)
        playlist_id, track_count = importer.import_playlist_by_url(playlist_url)
        logger.info(f"Playlist {playlist_id} imported with {track_count} tracks")
        _print_global_stats(database)

    _run_command(ctx, handler, needs_spotify=True)


@cli.command()
@click.option("--limit", type=click.IntRange(1, 50), default=50, show_default=True,
              help="Playlists to list")
@click.option("--offset", type=click.IntRange(0), default=0, show_default=True,
              help="Playlists to skip")
@click.option("--remote", is_flag=True, help="List your Spotify account playlists instead")
@click.pass_context
def playlists(ctx: click.Context, limit: int, offset: int, remote: bool) -> None:
    """List imported playlists, or your Spotify playlists with --remote."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        if remote:
            client = SpotifyClient(_require_token_manager(token_manager))
            page = client.current_user_playlists(limit=limit, offset=offset)
            for item in page.get("items") or []:
                if not item:
                    continue
                total = (item.get("tracks") or {}).get("total", 0)
                click.echo(f"{item.get('id')}  {item.get('name')}  ({total} tracks)")
            click.echo(f"{page.get('total', 0)} playlists on Spotify")
            return

        stored = database.get_all_playlists(limit=limit, offset=offset)
        if not stored:
            click.echo("No playlists imported yet")
            return
        for playlist in stored:
            click.echo(f"{playlist.id}  {playlist.name}  ({playlist.track_count} tracks)")

    _run_command(ctx, handler, needs_spotify=remote)


# =============================================================================
# Conversion Commands
# =============================================================================

@cli.command()
@click.option("--limit", type=click.IntRange(1), default=None,
              help="Tracks to convert (default: conversion.batch_size)")
@click.option("--max-tracks", type=click.IntRange(1), default=None,
              help="Hard cap on tracks converted in this run")
@click.option("--workers", type=click.IntRange(1), default=None,
              help="Worker threads; more than 1 converts unordered on a pool (default: conversion.workers, 1)")
@click.pass_context
def convert(ctx: click.Context, limit: Optional[int], max_tracks: Optional[int], workers: Optional[int]) -> None:
    """Find YouTube videos for tracks that have none yet."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        batch_limit = limit or config.conversion.batch_size
        cap = max_tracks if max_tracks is not None else config.conversion.max_tracks
        worker_count = workers or config.conversion.workers

        service = ConversionService(database, create_search_provider(config.youtube), config.youtube)

        pending = database.get_conversion_counts().pending_conversion
        total = min(pending, batch_limit if cap is None else min(batch_limit, cap))
        if total == 0:
            logger.info("Nothing to convert")
            _print_global_stats(database)
            return

        with ConversionProgressBar(total=total) as progress:

            def on_result(outcome: TrackOutcome) -> None:
                if outcome.converted:
                    progress.log(format_converted_message(outcome.track_name, outcome.youtube_url))
                else:
                    progress.log(format_failed_message(outcome.track_name, outcome.error))
                progress.update(converted=outcome.converted, low_confidence=outcome.low_confidence)

            if worker_count > 1:
                result = service.convert_concurrent(
                    batch_limit, worker_count, max_tracks=cap, on_result=on_result
                )
            else:
                result = service.convert_batch(batch_limit, max_tracks=cap, on_result=on_result)

        click.echo(
            f"Processed {result.processed}: {result.successful} converted, "
            f"{result.failed} failed ({result.success_rate:.1f}%)"
        )
        _print_global_stats(database)

    _run_command(ctx, handler)


@cli.command("convert-track")
@click.argument("track_id", metavar="<track-id>")
@click.pass_context
def convert_track(ctx: click.Context, track_id: str) -> None:
    """Search again for one track and overwrite its YouTube URL."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        service = ConversionService(database, create_search_provider(config.youtube), config.youtube)
        click.echo(service.convert_one_forced(track_id))

    _run_command(ctx, handler)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show how many stored tracks have been converted."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        _print_global_stats(database)

    _run_command(ctx, handler)


# =============================================================================
# Library Commands
# =============================================================================

@cli.command()
@click.argument("playlist_id", metavar="<playlist-id>")
@click.pass_context
def show(ctx: click.Context, playlist_id: str) -> None:
    """Show the tracks of an imported playlist with their YouTube URLs."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        playlist = database.get_playlist(playlist_id)
        if playlist is None:
            raise StoreError(f"Playlist not found: {playlist_id}", details={"playlist_id": playlist_id})

        click.echo(f"{playlist.name} by {playlist.owner_name} ({playlist.track_count} tracks)")
        for track, position in database.get_playlist_tracks(playlist_id):
            artists = ", ".join(a.name for a in database.get_artists(track.id))
            url = track.youtube_url or "-"
            click.echo(f"{position:>4}. {track.name} - {artists}  {url}")

    _run_command(ctx, handler)


@cli.command()
@click.argument("name", metavar="<name>")
@click.option("--limit", type=click.IntRange(1), default=20, show_default=True,
              help="Maximum results")
@click.pass_context
def search(ctx: click.Context, name: str, limit: int) -> None:
    """Find stored tracks whose name contains NAME."""

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        tracks = database.search_tracks_by_name(name, limit=limit)
        if not tracks:
            click.echo(f"No tracks matching '{name}'")
            return
        for track in tracks:
            click.echo(f"{track.id}  {track.name}  {track.youtube_url or '-'}")

    _run_command(ctx, handler)


@cli.command("add-track")
@click.argument("name", metavar="<name>")
@click.argument("artist", metavar="<artist>")
@click.pass_context
def add_track(ctx: click.Context, name: str, artist: str) -> None:
    """Add a track that is not on Spotify; it is converted like any other."""
    if not name.strip() or not artist.strip():
        raise click.BadParameter("track name and artist must not be empty")

    def handler(config: Config, database: Database, token_manager: Optional[TokenManager]) -> None:
        click.echo(database.add_manual_track(name.strip(), artist.strip()))

    _run_command(ctx, handler)


def _print_global_stats(database: Database) -> None:
    """Log conversion statistics for the whole store."""
    counts = database.get_conversion_counts()

    logger.info("=" * 60)
    logger.info("CONVERSION STATISTICS")
    logger.info("=" * 60)
    logger.info(f"Total tracks:      {counts.total_tracks}")
    logger.info(f"Converted:         {counts.converted_tracks}")
    logger.info(f"Pending:           {counts.pending_conversion}")
    logger.info(f"Conversion rate:   {counts.conversion_rate:.1f}%")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `tunebridge` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
