import json
import click
import yaml
from pathlib import Path
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config
from .engine.coverage import coverage as check_coverage
from .models.reports import JobResult
from .pipeline import JobOrchestrator
from .stages.outline import normalize_objectives
from .utils.logger import setup_logger
from .utils.progress import chapter_progress_callback, create_progress

console = Console()


def _load_document(path: Path):
    """Read a YAML or JSON file; JSON is valid YAML, so one loader covers both."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _score_table(result: JobResult) -> Table:
    table = Table(title=f"Job {result.job_id[:8]}: {result.status}")
    table.add_column("#", justify="right")
    table.add_column("Chapter")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    for i, s in enumerate(result.chapter_scores, 1):
        color = "green" if s.status == "approved" else "red"
        score = "-" if s.score is None else f"{s.score:g}"
        table.add_row(str(i), s.title, f"[{color}]{s.status}[/{color}]", score, str(s.attempts))
    return table


@click.group()
@click.option('--config', '-c', type=click.Path(), default='config.yaml',
              help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool):
    """Guide Writer - Generate certification study guides with LLM stages."""
    ctx.ensure_object(dict)

    config_path = Path(config)
    if config_path.exists():
        ctx.obj['config'] = Config.from_yaml(config_path)
    else:
        ctx.obj['config'] = Config()

    log_level = "DEBUG" if verbose else ctx.obj['config'].log_level
    logger = setup_logger(log_level)
    ctx.obj['logger'] = logger

    logger.debug(f"Guide Writer v{__version__}")
    if config_path.exists():
        logger.info(f"Config loaded from: {config_path}")


@cli.command()
@click.argument('spec_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(), help='Write the job result as JSON')
@click.option('--parallel', type=int, help='Override max_parallel_chapters')
@click.pass_context
def run(ctx: click.Context, spec_file: str, output: str, parallel: int):
    """Run a generation job from a YAML or JSON job request."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']
    if parallel:
        config.pipeline.max_parallel_chapters = parallel

    spec = _load_document(Path(spec_file))
    if not isinstance(spec, dict):
        raise click.ClickException(f"{spec_file} does not contain a job request")

    with create_progress(console) as progress:
        task_id = progress.add_task("Starting job...", total=None)
        orchestrator = JobOrchestrator.from_config(
            config, progress=chapter_progress_callback(progress, task_id)
        )
        try:
            result = orchestrator.run_job(spec)
        finally:
            orchestrator.close()

    console.print(_score_table(result))
    if result.book and result.book.stats.average_score is not None:
        console.print(f"Average score: {result.book.stats.average_score}")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Result written to: {output_path}")

    if result.status != "completed":
        raise click.ClickException(result.error or "Job failed")
    logger.success(f"Job {result.job_id} completed")


@cli.command()
@click.argument('objectives_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('content_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def coverage(ctx: click.Context, objectives_file: str, content_file: str):
    """Check which learning objectives a text covers."""
    config = ctx.obj['config']
    data = _load_document(Path(objectives_file))
    if isinstance(data, dict):
        data = data.get("learning_objectives") or data.get("objectives") or []
    objectives = normalize_objectives(data, 1)
    if not objectives:
        raise click.ClickException(f"No learning objectives found in {objectives_file}")

    content = Path(content_file).read_text(encoding="utf-8")
    report = check_coverage(objectives, content, threshold=config.revision.coverage_threshold)

    table = Table(title=f"Coverage: {report.percent}%")
    table.add_column("Objective")
    table.add_column("Description")
    table.add_column("Covered")
    for o in objectives:
        covered = report.per_objective[o.id]
        table.add_row(o.id, o.description, "[green]yes[/green]" if covered else "[red]no[/red]")
    console.print(table)
    click.echo(json.dumps({"percent": report.percent, "missing": report.missing}))


@cli.command('init-config')
@click.argument('path', type=click.Path(dir_okay=False))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def init_config(ctx: click.Context, path: str, force: bool):
    """Write the default configuration as YAML."""
    target = Path(path)
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists (use --force to overwrite)")
    target.parent.mkdir(parents=True, exist_ok=True)
    Config().to_yaml(target)
    ctx.obj['logger'].info(f"Default config written to: {target}")


def main():
    cli()

if __name__ == '__main__':
    main()
