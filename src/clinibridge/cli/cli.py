"""Command-line interface for CliniBridge."""

import asyncio
import json
import logging
from pathlib import Path

import click

from clinibridge.config import get_settings
from clinibridge.models.model_chat import ChatMessage
from clinibridge.models.model_clinical_trials import PatientProfile, TrialSummary
from clinibridge.services.chat import chat as run_chat
from clinibridge.services.eligibility import EligibilityExplainer
from clinibridge.services.featured_trials import CATEGORY_QUERIES, get_featured_trials
from clinibridge.services.scoring import score_trials
from clinibridge.services.trial_search import search_trials


def echo_trials(trials: list[TrialSummary]) -> None:
    for i, trial in enumerate(trials, 1):
        label = f" [{trial.match_label} {trial.match_score}]" if trial.match_label else ""
        click.echo(f"  {i}. {trial.nct_id} {trial.title}{label}")
        if trial.match_reason:
            click.echo(f"     {trial.match_reason}")


@click.group()
@click.version_option(package_name="clinibridge")
def main():
    """CliniBridge: find recruiting clinical trials for a patient."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(levelname)s %(name)s %(message)s",
    )


@main.command()
@click.option("-c", "--condition", required=True, help="Condition to search for")
@click.option("-a", "--age", type=float, required=True, help="Patient age in years")
@click.option("-l", "--location", default="", help="City, state, or country")
@click.option("-s", "--synonym", "synonyms", multiple=True, help="Condition synonym")
@click.option("-m", "--medication", "medications", multiple=True, help="Current medication")
@click.option("--info", default="", help="Additional patient details")
@click.option("--score/--no-score", default=True, show_default=True, help="Score with the LLM")
@click.option("-o", "--output", type=click.Path(), help="Output file path (JSON)")
def search(
    condition: str,
    age: float,
    location: str,
    synonyms: tuple[str, ...],
    medications: tuple[str, ...],
    info: str,
    score: bool,
    output: str | None,
):
    """Find recruiting trials and optionally score them for the patient."""
    profile = PatientProfile(
        condition=condition,
        age=age,
        location=location,
        medications=list(medications),
        additional_info=info,
    )

    async def run():
        result = await search_trials(condition, list(synonyms), location)
        if result.error is not None or not score:
            return result.trials, result.error
        return await score_trials(result.trials, profile), None

    trials, error = asyncio.run(run())
    if error:
        raise click.ClickException(error)

    click.echo(f"Found {len(trials)} recruiting trials for: {condition}")
    echo_trials(trials)

    if output:
        Path(output).write_text(
            json.dumps([t.model_dump(mode="json") for t in trials], indent=2)
        )
        click.echo(f"\nResults saved to: {output}")


@main.command()
@click.argument("nct_id")
@click.option("-c", "--condition", required=True, help="Patient condition")
@click.option("-a", "--age", type=float, required=True, help="Patient age in years")
@click.option("--sex", default=None, help="Patient sex")
@click.option("-m", "--medication", "medications", multiple=True, help="Current medication")
@click.option("--info", default="", help="Additional patient details")
def eligibility(
    nct_id: str,
    condition: str,
    age: float,
    sex: str | None,
    medications: tuple[str, ...],
    info: str,
):
    """Explain a trial's eligibility criteria for the patient, as JSON."""
    profile = PatientProfile(
        condition=condition,
        age=age,
        sex=sex,
        medications=list(medications),
        additional_info=info,
    )
    breakdown = asyncio.run(EligibilityExplainer().get_breakdown(nct_id, profile))
    click.echo(breakdown.model_dump_json(indent=2))


@main.command()
def chat():
    """Find trials through a guided conversation. An empty line quits."""
    history: list[ChatMessage] = []
    click.echo("Tell me about the patient: condition, age and location.")
    while True:
        text = click.prompt("you", default="", show_default=False).strip()
        if not text:
            break
        history.append(ChatMessage(role="user", content=text))

        result = asyncio.run(run_chat(history))
        if result.reply:
            history.append(ChatMessage(role="assistant", content=result.reply))
            click.echo(f"clinibridge: {result.reply}")
        if result.error:
            click.echo(f"Error: {result.error}", err=True)
        if result.trials:
            echo_trials(result.trials)


@main.command()
@click.option(
    "--category",
    type=click.Choice(sorted(CATEGORY_QUERIES)),
    default="all",
    show_default=True,
)
def featured(category: str):
    """Show three featured recruiting trials."""
    for trial in asyncio.run(get_featured_trials(category)):
        click.echo(f"{trial.nct_id} {trial.title} ({trial.phase})")
        click.echo(f"  {trial.summary}")


if __name__ == "__main__":
    main()
