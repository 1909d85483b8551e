"""
FluentPro - CLI Entry Point.

Usage:
    fluentpro onboard          Walk through onboarding against the backend
    fluentpro serve            Start the web API
    fluentpro health           Check configuration
    fluentpro --help           Show help
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner

from onboarding.errors import OnboardingError
from onboarding.options import ConversationPartner, Industry, Language, Situation
from onboarding.payload import OnboardingSummary, describe_summary
from onboarding.session import OnboardingSession
from onboarding.state import BasicInfoStep, OnboardingPhase

app = typer.Typer(
    name="fluentpro",
    help="FluentPro - Business English for your actual job.",
    add_completion=False,
)
console = Console()


@app.command()
def onboard(
    token: str = typer.Option(None, "--token", "-t", help="Backend access token (defaults to FLUENTPRO_API_TOKEN)"),
    base_url: str = typer.Option(None, "--base-url", help="Backend base URL (defaults to FLUENTPRO_API_BASE_URL)"),
) -> None:
    """Walk through the onboarding flow interactively."""
    from fluentpro.config import get_settings

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    access_token = token or settings.fluentpro_api_token
    if not access_token:
        console.print("[red]No access token. Pass --token or set FLUENTPRO_API_TOKEN.[/red]")
        raise typer.Exit(1)

    console.print(
        Panel.fit(
            "[bold blue]FluentPro Onboarding[/bold blue]\n"
            "A few questions so we can build your business English plan.\n\n"
            "[dim]Press Ctrl+C to quit at any time.[/dim]",
            title="Welcome",
            border_style="blue",
        )
    )

    try:
        asyncio.run(_run_onboarding(
            base_url or settings.fluentpro_api_base_url,
            access_token,
            settings.collaborator_timeout_seconds,
        ))
    except KeyboardInterrupt:
        console.print("\n\n[dim]Onboarding interrupted. Goodbye! 👋[/dim]")


async def _run_onboarding(base_url: str, access_token: str, timeout: float) -> None:
    from onboarding.client import OnboardingAPIClient

    async with OnboardingAPIClient(base_url, access_token, timeout=timeout) as client:
        session = OnboardingSession(
            role_matcher=client,
            course_recommender=client,
            selection_store=client,
            on_finish=_enter_app,
            timeout=timeout,
        )

        while not session.is_finished:
            try:
                await _step(session)
            except OnboardingError as e:
                console.print(f"\n[red]{e.message}[/red]")


async def _step(session: OnboardingSession) -> None:
    """Render the current phase and apply one user action."""
    phase = session.current_phase
    console.print(f"\n[dim]Progress: {session.progress:.0%}[/dim]")

    if phase == OnboardingPhase.WELCOME:
        console.input("[bold]Welcome to FluentPro![/bold] Press Enter to continue ")
        session.continue_from_welcome()

    elif phase == OnboardingPhase.INTRO:
        console.input("First we'll learn about you and your job. Press Enter to start ")
        session.continue_from_intro()

    elif phase == OnboardingPhase.BASIC_INFO:
        await _basic_info_step(session)

    elif phase == OnboardingPhase.PHASE1_COMPLETE:
        console.input("[green]Phase 1 complete![/green] Next: who you talk to at work. Press Enter ")
        session.continue_from_phase1_complete()

    elif phase == OnboardingPhase.CONVERSATION_PARTNERS:
        selected = session.answers.selected_partners
        answer = _ask_toggle("Who do you speak English with at work?", list(ConversationPartner), selected)
        if answer is None:
            with _spinner("Saving..."):
                await session.continue_from_partner_selection()
        else:
            session.toggle_partner(answer)

    elif phase == OnboardingPhase.CONVERSATION_SITUATIONS:
        partner = session.current_partner
        answer = _ask_toggle(
            f"When do you speak English with {partner.value.lower()}?",
            list(Situation),
            session.answers.current_situations,
            allow_back=session.answers.current_partner_index > 0,
        )
        if answer is None:
            with _spinner("Saving..."):
                await session.continue_from_situation_selection()
        elif answer == "back":
            session.previous_situation_partner()
        else:
            session.toggle_situation(answer)

    elif phase == OnboardingPhase.PHASE2_COMPLETE:
        await _course_step(session)

    elif phase == OnboardingPhase.ONBOARDING_COMPLETE:
        with _spinner("Finishing up..."):
            await session.finish()


async def _basic_info_step(session: OnboardingSession) -> None:
    step = session.current_basic_info_step

    if step == BasicInfoStep.LANGUAGE:
        language = _ask_choice("What is your native language?", list(Language))
        with _spinner("Saving..."):
            await session.select_language(language)

    elif step == BasicInfoStep.INDUSTRY:
        industry = _ask_choice("What industry do you work in?", list(Industry), allow_back=True)
        if industry == "back":
            session.previous_basic_info_step()
            return
        with _spinner("Saving..."):
            await session.select_industry(industry)

    elif step == BasicInfoStep.ROLE:
        title = console.input("\n[bold]What's your job title?[/bold] (b = back) ").strip()
        if title.lower() == "b":
            session.previous_basic_info_step()
            return
        description = console.input("[bold]Describe what you do:[/bold] ").strip()
        with _spinner("Finding matching roles..."):
            await session.submit_role(title, description)

    elif step == BasicInfoStep.ROLE_RESULT:
        candidates = session.answers.matched_roles
        if not candidates:
            console.print("\nWe couldn't find a matching role. We'll create a custom one for you.")
            answer = console.input("Press Enter to continue (b = back) ").strip().lower()
            if answer == "b":
                session.previous_basic_info_step()
            else:
                with _spinner("Saving..."):
                    await session.select_no_match()
            return

        console.print("\n[bold]Is one of these your role?[/bold]")
        for i, role in enumerate(candidates, start=1):
            console.print(f"  {i}. {role.title} [dim]({role.confidence_score:.0%} match)[/dim]")
            console.print(f"     [dim]{role.description}[/dim]")
        answer = console.input("Number, n = none of these, b = back: ").strip().lower()
        if answer == "b":
            session.previous_basic_info_step()
        elif answer == "n":
            with _spinner("Saving..."):
                await session.select_no_match()
        elif answer.isdigit() and 1 <= int(answer) <= len(candidates):
            with _spinner("Saving..."):
                await session.select_role(candidates[int(answer) - 1])
        else:
            console.print("[yellow]Please pick a number, n or b.[/yellow]")


async def _course_step(session: OnboardingSession) -> None:
    recommendation = session.answers.course_recommendation
    if recommendation is None:
        with _spinner("Building your course recommendations..."):
            await session.continue_from_phase2_complete()
        return

    if not recommendation.courses:
        if recommendation.is_pending:
            wait = recommendation.estimated_wait or "a little while"
            console.print(f"\nWe're creating custom courses for you. They'll be ready in {wait}.")
        else:
            console.print("\nNo courses are available yet. We'll let you know when they are.")
        console.input("Press Enter to complete onboarding ")
        session.acknowledge_no_courses()
        return

    console.print("\n[bold]Recommended courses[/bold]")
    for i, course in enumerate(recommendation.courses, start=1):
        console.print(f"  {i}. {course.name} [dim]({course.level}, {course.estimated_duration}, ★ {course.rating:.1f})[/dim]")
    answer = console.input("Pick a course: ").strip()
    if answer.isdigit() and 1 <= int(answer) <= len(recommendation.courses):
        session.select_course(recommendation.courses[int(answer) - 1].id)
    else:
        console.print("[yellow]Please pick one of the numbers.[/yellow]")


def _enter_app(summary: OnboardingSummary | None) -> None:
    if summary is not None:
        console.print(f"\n[dim]{describe_summary(summary)}[/dim]")
    console.print("\n[bold green]You're all set. Welcome to FluentPro! 🎉[/bold green]")


def _ask_choice(question: str, options: list, allow_back: bool = False):
    """Ask for one option by number. Returns the option, or "back"."""
    while True:
        console.print(f"\n[bold]{question}[/bold]")
        for i, option in enumerate(options, start=1):
            console.print(f"  {i}. {option.value}")
        hint = "Number" + (", b = back" if allow_back else "")
        answer = console.input(f"{hint}: ").strip().lower()
        if allow_back and answer == "b":
            return "back"
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        console.print("[yellow]Please pick one of the numbers.[/yellow]")


def _ask_toggle(question: str, options: list, selected: set, allow_back: bool = False):
    """Multi-select: returns an option to toggle, "back", or None to continue."""
    while True:
        console.print(f"\n[bold]{question}[/bold]")
        for i, option in enumerate(options, start=1):
            mark = "[green]✓[/green]" if option in selected else " "
            console.print(f"  [{mark}] {i}. {option.value}")
        hint = "Number to toggle, c = continue" + (", b = back" if allow_back else "")
        answer = console.input(f"{hint}: ").strip().lower()
        if answer == "c":
            return None
        if allow_back and answer == "b":
            return "back"
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        console.print("[yellow]Please pick a number or c.[/yellow]")


def _spinner(text: str) -> Live:
    return Live(Spinner("dots", text=text), console=console, transient=True)


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the web API server."""
    import os
    import uvicorn

    actual_port = int(os.environ.get("PORT", port))

    console.print("\n[bold green]FluentPro Web API[/bold green]")
    console.print(f"Starting server on http://localhost:{actual_port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "fluentpro.web.app:app",
        host="0.0.0.0",
        port=actual_port,
        reload=reload,
    )


@app.command()
def health() -> None:
    """Check configuration."""
    from fluentpro.config import get_settings

    console.print("\n[bold]FluentPro Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.fluentpro_env}")
        console.print(f"   Log level: {settings.log_level}")

        if settings.fluentpro_api_base_url.startswith("https://"):
            console.print(f"✅ Backend URL: {settings.fluentpro_api_base_url}")
        else:
            console.print(f"⚠️  Backend URL is not HTTPS: {settings.fluentpro_api_base_url}")

        if settings.fluentpro_api_token:
            console.print("✅ CLI access token configured")
        else:
            console.print("ℹ️  No CLI access token (pass --token to onboard)")

        console.print(f"   Collaborator timeout: {settings.collaborator_timeout_seconds:g}s")
        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Check your .env file and environment variables.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from fluentpro import __version__

    console.print(f"FluentPro version {__version__}")


if __name__ == "__main__":
    app()
