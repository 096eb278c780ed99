"""Command-line interface for Curio."""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from curio.analysis import (
    AnalysisRecord,
    ConsensusOutcome,
    evaluate_consensus_triggers,
    merge_results,
    resolve_consensus_config,
)
from curio.config import get_settings
from curio.exceptions import CurioError
from curio.interactive import (
    SessionStatus,
    abandon_session,
    add_user_response,
    create_interactive_session,
    detect_information_needs,
    get_quick_questions,
)
from curio.interactive.assistant import generate_ai_reply
from curio.interactive.models import ConversationMessage
from curio.utils.helpers import file_to_data_url, format_percentage, format_price
from curio.utils.logger import setup_logger

console = Console()

QUIT_WORDS = ("quit", "exit")


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool):
    """Curio - Consensus appraisal of antiques and collectibles."""
    setup_logger(log_level="DEBUG" if verbose else None)
    if verbose:
        console.print("[dim]Verbose mode enabled[/dim]")


def _load_record(path: str) -> AnalysisRecord:
    return AnalysisRecord.model_validate_json(Path(path).read_text())


def _load_runs(path: str) -> List[AnalysisRecord]:
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict):
        data = [data]
    return [AnalysisRecord.model_validate(item) for item in data]


def _image_input(image: str) -> str:
    if image.startswith(("data:", "http://", "https://")):
        return image
    if Path(image).is_file():
        return file_to_data_url(image)
    return image


def _consensus_overrides(max_runs: Optional[int] = None, use_reasoning: bool = True) -> dict:
    """Consensus policy overrides taken from settings and command options."""
    settings = get_settings()
    overrides = {
        "reasoning_model": settings.reasoning_model,
        "reasoning_timeout_seconds": settings.reasoning_timeout_seconds,
        "use_reasoning_model": use_reasoning,
    }
    if max_runs is not None:
        overrides["max_runs"] = max_runs
    return overrides


def _display_record(record: AnalysisRecord, title: str = "Analysis"):
    """Display an analysis record in a formatted table."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Name", record.name)
    table.add_row("Maker", record.maker or "N/A")
    table.add_row("Era", record.era or "N/A")
    table.add_row("Domain", record.domain_category.value)
    table.add_row("Category", record.product_category or "N/A")
    table.add_row("Confidence", format_percentage(record.confidence))
    table.add_row("Value", f"{format_price(record.value_min)} - {format_price(record.value_max)}")
    table.add_row("Authenticity Risk", record.authenticity_risk.value)
    if record.expert_referral_recommended:
        table.add_row("Expert Referral", record.expert_referral_reason or "Recommended")

    console.print(table)

    description = record.render_description()
    if description:
        console.print(f"\n{escape(description)}")


def _display_outcome(outcome: ConsensusOutcome):
    """Display runs, agreement scores and the final record."""
    if len(outcome.all_runs) > 1:
        console.print("\n[bold cyan]Analysis Runs[/bold cyan]")
        runs_table = Table(show_header=True, header_style="bold magenta")
        runs_table.add_column("Run", style="cyan")
        runs_table.add_column("Name", style="white")
        runs_table.add_column("Confidence", style="green")
        runs_table.add_column("Value", style="yellow")

        for i, run in enumerate(outcome.all_runs, 1):
            runs_table.add_row(
                str(i),
                run.name,
                format_percentage(run.confidence),
                f"{format_price(run.value_min)} - {format_price(run.value_max)}",
            )
        console.print(runs_table)

    agreement = outcome.agreement
    console.print("\n[bold cyan]Agreement[/bold cyan]")
    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Name", f"{agreement.name_agreement:.1%}")
    table.add_row("Value", f"{agreement.value_agreement:.1%}")
    table.add_row("Category", f"{agreement.category_agreement:.1%}")
    table.add_row("Strategy", agreement.merge_strategy.value)
    console.print(table)

    _display_record(outcome.final_result, "Final Result")


@cli.command("analyze")
@click.argument("image")
@click.option("--asking-price", type=float, help="Seller's asking price in dollars")
@click.option("--max-runs", type=int, help="Maximum number of analysis runs")
@click.option("--force-multi-run", is_flag=True, help="Run consensus even if no trigger fires")
@click.option("--no-reasoning", is_flag=True, help="Merge algorithmically instead of synthesizing")
def analyze(
    image: str,
    asking_price: Optional[float],
    max_runs: Optional[int],
    force_multi_run: bool,
    no_reasoning: bool,
):
    """Analyze an item photo with conditional multi-run consensus.

    IMAGE is a path to an image file, a data URL, or an image URL.
    """
    try:
        # Import here so offline commands never build provider clients
        from curio.analysis.analyzer import ConsensusAnalyzer

        config = resolve_consensus_config(
            _consensus_overrides(max_runs, use_reasoning=not no_reasoning)
        )

        console.print("[bold]Analyzing item...[/bold]")
        analyzer = ConsensusAnalyzer()
        outcome = analyzer.analyze(
            _image_input(image),
            asking_price=asking_price,
            config=config,
            force_multi_run=force_multi_run,
            emit_event=lambda event: console.print(
                f"[dim]{event.progress:3d}% {event.message}[/dim]"
            ),
        )
        _display_outcome(outcome)

        console.print("\n[green]✓[/green] Analysis complete")

    except CurioError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]✗ Error: {escape(str(e))}[/red]")
        sys.exit(1)


@cli.command("triggers")
@click.argument("record_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-runs", type=int, help="Maximum number of analysis runs")
def triggers(record_file: str, max_runs: Optional[int]):
    """Show which re-run triggers fire for a saved analysis record."""
    try:
        record = _load_record(record_file)
        config = resolve_consensus_config({"max_runs": max_runs} if max_runs is not None else None)
        evaluation = evaluate_consensus_triggers(record, config)

        console.print("\n[bold cyan]Trigger Evaluation[/bold cyan]")
        table = Table(show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Re-run", "YES" if evaluation.should_rerun else "NO")
        table.add_row("Suggested Runs", str(evaluation.suggested_runs))
        table.add_row("Reasoning Model", "YES" if evaluation.use_reasoning else "NO")
        console.print(table)

        for reason in evaluation.reasons:
            console.print(f"  [yellow]→[/yellow] {escape(reason)}")

    except (ValidationError, CurioError) as e:
        console.print(f"[red]✗ Invalid input: {escape(str(e))}[/red]")
        sys.exit(1)


@cli.command("merge")
@click.argument("runs_file", type=click.Path(exists=True, dir_okay=False))
def merge(runs_file: str):
    """Merge saved analysis runs (a JSON list of records) into a consensus."""
    try:
        runs = _load_runs(runs_file)
        if not runs:
            console.print("[red]✗ No runs to merge[/red]")
            sys.exit(1)
        _display_outcome(merge_results(runs))

    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Invalid input: {escape(str(e))}[/red]")
        sys.exit(1)


@cli.command("needs")
@click.argument("record_file", type=click.Path(exists=True, dir_okay=False))
def needs(record_file: str):
    """List the information that would most improve a saved analysis."""
    try:
        record = _load_record(record_file)
    except ValidationError as e:
        console.print(f"[red]✗ Invalid input: {escape(str(e))}[/red]")
        sys.exit(1)

    found = detect_information_needs(record)

    console.print("\n[bold cyan]Information Needs[/bold cyan]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Priority", style="yellow")
    table.add_column("Gain", style="green")
    table.add_column("Question", style="white")

    for need in found:
        table.add_row(
            need.id,
            need.priority,
            f"+{need.expected_confidence_gain:.0%}",
            need.question,
        )
    console.print(table)

    console.print("\n[bold cyan]Quick Questions[/bold cyan]")
    for question in get_quick_questions(record):
        console.print(f"  • {question}")


def _ask_assistant(session, question: str):
    """Send a free-form question to the assistant and print the reply."""
    from curio.llm.manager import LLMManager

    try:
        text_call = LLMManager().complete_text
    except CurioError as e:
        console.print(f"[yellow]Assistant unavailable: {escape(str(e))}[/yellow]")
        return

    reply = asyncio.run(generate_ai_reply(session, question, "text", text_call))
    session.conversation_history.append(ConversationMessage(role="user", content=question))
    session.conversation_history.append(reply)
    console.print(f"\n{escape(reply.content)}\n")


def _prompt_answer(session) -> Optional[str]:
    """Prompt until the user answers, skips (empty) or quits (None)."""
    while True:
        answer = click.prompt("Your answer", default="", show_default=False).strip()
        if answer.lower() in QUIT_WORDS:
            return None
        if answer.startswith("?"):
            _ask_assistant(session, answer[1:].strip())
            continue
        return answer


@cli.command("interactive")
@click.argument("record_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--image", help="Original item image; enables reanalysis at the end")
@click.option("--asking-price", type=float, help="Seller's asking price in dollars")
@click.option("--max-runs", type=int, help="Maximum number of reanalysis runs")
def interactive(
    record_file: str,
    image: Optional[str],
    asking_price: Optional[float],
    max_runs: Optional[int],
):
    """Answer follow-up questions to refine a saved analysis.

    Leave an answer empty to skip a question, start it with "?" to ask the
    assistant something instead, or type "quit" to stop.
    """
    try:
        record = _load_record(record_file)
    except ValidationError as e:
        console.print(f"[red]✗ Invalid input: {escape(str(e))}[/red]")
        sys.exit(1)

    session = create_interactive_session(Path(record_file).stem, record)
    console.print(f"\n{escape(session.conversation_history[-1].content)}\n")

    for need in list(session.information_needs):
        if session.is_terminal:
            break
        if session.conversation_history[-1].related_need_id != need.id:
            console.print(f"\n[bold]{escape(need.question)}[/bold]")
        answer = _prompt_answer(session)
        if answer is None:
            abandon_session(session)
            console.print("[yellow]Session abandoned[/yellow]")
            return
        if not answer:
            continue

        response_type = "text"
        if need.type.value.startswith("photo_"):
            response_type = "photo"
            answer = _image_input(answer)
        elif need.type.value == "measurement":
            response_type = "measurement"
        elif need.type.value == "documentation":
            response_type = "document"

        add_user_response(session, need.id, response_type, answer)
        console.print(f"\n{escape(session.conversation_history[-1].content)}\n")

    if session.status == SessionStatus.PROCESSING and image:
        try:
            from curio.analysis.analyzer import ConsensusAnalyzer
            from curio.interactive.session import reanalyze_session

            console.print("[bold]Reanalyzing with your answers...[/bold]")
            outcome = asyncio.run(
                reanalyze_session(
                    session,
                    ConsensusAnalyzer(),
                    _image_input(image),
                    asking_price,
                    config=_consensus_overrides(max_runs),
                )
            )
            console.print(f"\n{escape(session.conversation_history[-1].content)}\n")
            if outcome is not None:
                _display_record(session.current_analysis, "Updated Analysis")
        except CurioError as e:
            console.print(f"[red]✗ {escape(str(e))}[/red]")
            sys.exit(1)
    elif session.status == SessionStatus.PROCESSING:
        console.print("[dim]Ready for reanalysis; pass --image to run it.[/dim]")

    console.print(f"\n[green]✓[/green] Session {session.id} is {session.status.value}")


if __name__ == "__main__":
    cli()
