"""Command-line interface for Book Forge."""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from book_forge import __version__

console = Console()


def _generation_settings(genre, tone, audience, words, characters, ending):
    from book_forge.models import GenerationSettings

    return GenerationSettings(
        genre=genre,
        tone=tone,
        target_audience=audience,
        word_count=words,
        ending_type=ending,
        character_names=characters or (),
    )


def book_options(func):
    """Options shared by every command that needs GenerationSettings."""
    options = [
        click.option("--genre", "-g", default="fantasy", show_default=True),
        click.option("--tone", default="serious", show_default=True),
        click.option("--audience", default="adult", show_default=True, help="Target audience"),
        click.option("--words", "-w", default=50000, show_default=True, type=click.IntRange(1500, 500000)),
        click.option("--character", "-c", "characters", multiple=True, help="Character name (repeatable)"),
        click.option("--ending", default="satisfying", show_default=True),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override BOOKFORGE_LOG_LEVEL")
def main(log_level) -> None:
    """Book Forge - Plan and write long-form fiction with quality gates."""
    from book_forge import logconf
    from book_forge.config import get_settings

    logconf.init(log_level or get_settings().log_level, console=console)


@main.command()
def status() -> None:
    """Show provider configuration and whether the model backend is reachable."""
    from book_forge.config import get_settings
    from book_forge.llm import LLMClient

    settings = get_settings()
    console.print("[bold]Book Forge Status[/bold]\n")

    table = Table()
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Provider", settings.llm_provider)
    table.add_row("Model", settings.model_name)
    table.add_row("Request timeout", f"{settings.request_timeout:.0f}s")
    table.add_row("Step attempts", str(settings.max_retries))
    table.add_row("Gateway attempts", str(settings.gateway_attempts))
    table.add_row("Drift thresholds", f"{settings.drift_threshold:.0f} / {settings.drift_regenerate_threshold:.0f}")
    table.add_row("Strict sanity", str(settings.strict_sanity))
    console.print(table)

    async def probe() -> bool:
        client = LLMClient(settings)
        try:
            return await client.is_available()
        finally:
            await client.aclose()

    if asyncio.run(probe()):
        console.print("[green]OK[/green] Model backend reachable")
    else:
        console.print("[red]X[/red] Model backend not reachable")


@main.command()
@book_options
@click.option("--seed", type=int, default=None, help="Seed for length variation")
def structure(genre, tone, audience, words, characters, ending, seed) -> None:
    """Preview the structural plan (no model calls)."""
    from book_forge.planning import StructuralPlanner, plan_chapter_sections

    gen = _generation_settings(genre, tone, audience, words, characters, ending)
    layout = StructuralPlanner(seed=seed).plan(gen)

    table = Table(title=f"{layout.chapter_count} chapters, {sum(layout.lengths):,} words")
    table.add_column("Ch", justify="right")
    table.add_column("Words", justify="right", style="green")
    table.add_column("Sections", justify="right")
    table.add_column("Notes", style="cyan")
    for number, length in enumerate(layout.lengths, start=1):
        notes = []
        if number in layout.act_breaks:
            notes.append("act break")
        if number == layout.climax_chapter:
            notes.append("climax")
        if number in layout.transition_chapters:
            notes.append("transition")
        sections = plan_chapter_sections(number, length, layout.chapter_count, gen)
        table.add_row(str(number), f"{length:,}", str(len(sections)), ", ".join(notes))
    console.print(table)


def _run_with_progress(description: str, make_coro):
    """Run a coroutine while a rich progress bar follows its ProgressReporter."""
    from book_forge.config import get_settings
    from book_forge.progress import ProgressReporter

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=100)

        def sink(percentage: float, message: str) -> None:
            progress.update(task, completed=percentage, description=message)

        reporter = ProgressReporter(sink, min_interval=get_settings().progress_min_interval)
        return asyncio.run(make_coro(reporter))


@main.command()
@click.argument("premise")
@book_options
@click.option("--output", "-o", type=click.Path(), default="plan.json", show_default=True)
def plan(premise, genre, tone, audience, words, characters, ending, output) -> None:
    """Plan a book for PREMISE and save the plan as JSON."""
    from book_forge.config import get_settings
    from book_forge.errors import FatalError
    from book_forge.llm import LLMClient
    from book_forge.planning import PlanningOrchestrator

    settings = get_settings()
    gen = _generation_settings(genre, tone, audience, words, characters, ending)

    async def run(reporter):
        client = LLMClient(settings)
        try:
            return await PlanningOrchestrator(client, settings, reporter).plan(premise, gen)
        finally:
            await client.aclose()

    try:
        book_plan = _run_with_progress("Planning...", run)
    except FatalError as e:
        console.print(f"[red]Planning failed:[/red] {e}")
        raise SystemExit(1)

    with open(output, "w", encoding="utf-8") as f:
        json.dump(book_plan.to_dict(), f, indent=2)

    console.print(f"\n[bold green]Plan ready:[/bold green] {book_plan.title}")
    console.print(f"  Chapters: {book_plan.structure_plan.total_chapters}")
    console.print(f"  Characters: {', '.join(book_plan.story_bible.character_names)}")
    console.print(f"  Retries: {book_plan.metadata.total_retries}")
    if book_plan.is_fallback:
        console.print(f"  [yellow]Fallback plan used:[/yellow] {book_plan.fallback_reason}")
    console.print(f"\n[green]OK[/green] Saved to {output}")


@main.command()
@click.argument("premise")
@book_options
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory")
@click.option("--seed", type=int, default=None)
def write(premise, genre, tone, audience, words, characters, ending, output, seed) -> None:
    """Plan and write a complete book for PREMISE."""
    from book_forge.config import get_settings
    from book_forge.errors import FatalError
    from book_forge.llm import LLMClient
    from book_forge.pipeline import BookPipeline, DirectoryStore

    settings = get_settings()
    gen = _generation_settings(genre, tone, audience, words, characters, ending)
    out_dir = Path(output) if output else settings.output_dir

    async def run(reporter):
        client = LLMClient(settings)
        try:
            pipeline = BookPipeline(client, settings, reporter, DirectoryStore(out_dir), seed=seed)
            return await pipeline.run(premise, gen)
        finally:
            await client.aclose()

    try:
        manuscript = _run_with_progress("Writing...", run)
    except FatalError as e:
        console.print(f"[red]Run failed:[/red] {e}")
        raise SystemExit(1)

    with open(out_dir / "manuscript.json", "w", encoding="utf-8") as f:
        json.dump(manuscript.to_dict(), f, indent=2)

    table = Table(title=manuscript.title)
    table.add_column("Ch", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Words", justify="right", style="green")
    table.add_column("Target", justify="right")
    table.add_column("Review")
    for chapter in manuscript.chapters:
        table.add_row(
            str(chapter.number), chapter.title, f"{chapter.word_count:,}", f"{chapter.target_words:,}",
            "[yellow]flagged[/yellow]" if chapter.flagged else "",
        )
    console.print(table)
    console.print(f"\n[green]OK[/green] {manuscript.word_count:,} words written to {out_dir}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--genre", "-g", default="fantasy", show_default=True)
@click.option("--audience", default="adult", show_default=True)
@click.option("--previous", type=click.Path(exists=True), help="Preceding section, for tense continuity")
@click.option("--lenient", is_flag=True, help="Major issues do not fail the check")
def check(path, genre, audience, previous, lenient) -> None:
    """Run the sanity and redundancy checks on a text file (no model calls)."""
    from book_forge.config import get_settings
    from book_forge.models import GenerationSettings
    from book_forge.quality import RedundancyReducer, SanityChecker

    settings = get_settings()
    text = Path(path).read_text(encoding="utf-8")
    previous_text = Path(previous).read_text(encoding="utf-8") if previous else None
    gen = GenerationSettings(genre=genre, target_audience=audience)

    result = SanityChecker(strict=not lenient).check(text, gen, previous_text)
    colour = "green" if result.is_valid else "red"
    console.print(f"[bold {colour}]{result.summary()}[/bold {colour}]\n")

    reducer = RedundancyReducer(None, settings)
    analysis = reducer.analyze(text, previous_text)
    console.print(reducer.summarize(analysis))
    quick = reducer.quick_check(text, previous_text)
    if quick.needs_reduction:
        console.print("\n[yellow]Redundancy reduction recommended[/yellow]")

    if not result.is_valid:
        raise SystemExit(1)


@main.command()
@click.argument("premise")
@book_options
@click.option("--output", "-o", type=click.Path(), help="Save the plan as JSON")
def fallback(premise, genre, tone, audience, words, characters, ending, output) -> None:
    """Print the deterministic fallback plan for PREMISE (no model calls)."""
    from book_forge.planning import synthesize_fallback_plan

    gen = _generation_settings(genre, tone, audience, words, characters, ending)
    book_plan = synthesize_fallback_plan(premise, gen, reason="requested from command line")

    console.print(f"[bold]{book_plan.title}[/bold]\n")
    console.print(book_plan.back_cover + "\n")
    table = Table(title="Chapters")
    table.add_column("Ch", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Words", justify="right", style="green")
    table.add_column("Scenes", justify="right")
    for chapter in book_plan.structure_plan.chapters:
        scenes = book_plan.story_bible.chapter_plan(chapter.number).scenes
        table.add_row(str(chapter.number), chapter.title, f"{chapter.word_count_target:,}", str(len(scenes)))
    console.print(table)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(book_plan.to_dict(), f, indent=2)
        console.print(f"\n[green]OK[/green] Saved to {output}")


if __name__ == "__main__":
    main()
