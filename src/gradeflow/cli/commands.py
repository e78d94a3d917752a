"""CLI commands for gradeflow.

Commands:
- init-db: Create the local database schema
- serve: Run the Web API with uvicorn
- rebalance: Spread practice questions over weak skills
- practice-test: Generate a practice test for one skill
- recommend: Practice recommendation for the weakest skill
- extract-text: OCR a scanned page and detect exam/student IDs
"""

import asyncio
import base64
import json
from pathlib import Path

import typer
from rich.console import Console

from gradeflow.config.app_config import load_app_config
from gradeflow.core.ocr_parsing import (
    detect_exam_id,
    detect_student_id,
    extract_questions_from_text,
)
from gradeflow.core.practice_test import (
    PracticeTestError,
    PracticeTestRequest,
    generate_practice_test,
)
from gradeflow.core.recommendation import (
    RecommendationRequest,
    generate_practice_recommendation,
)
from gradeflow.core.skill_distribution import SkillRequest, rebalance_distribution
from gradeflow.db.database import init_db
from gradeflow.llm.client import LLMClient, LLMConfig, LLMError
from gradeflow.ocr.vision_client import OcrError, VisionClient

app = typer.Typer(
    name="gradeflow",
    help="AI-assisted grading and practice-test generation.",
    no_args_is_help=True,
)

console = Console()


def _parse_skill_spec(spec: str) -> SkillRequest:
    """Parse NAME:SCORE:QUESTIONS (the name may itself contain colons)."""
    parts = spec.rsplit(":", 2)
    if len(parts) != 3:
        raise typer.BadParameter(f"Expected NAME:SCORE:QUESTIONS, got '{spec}'")
    name, score, questions = parts
    try:
        return SkillRequest(
            skill_name=name.strip(),
            score=float(score),
            requested_questions=int(questions),
        )
    except ValueError as e:
        raise typer.BadParameter(f"Invalid number in '{spec}'") from e


def _build_llm_client(
    provider: str | None, model: str | None, config_path: Path | None = None
) -> LLMClient:
    """Client from a models YAML file when given, else from the app config."""
    config = LLMConfig.from_yaml(config_path) if config_path else None
    return LLMClient(config=config, provider=provider, model=model)  # type: ignore[arg-type]


@app.command(name="init-db")
def init_db_command(
    db_path: Path | None = typer.Option(None, "--db-path", help="Database file (default from config)"),
) -> None:
    """Create the local database and its tables."""
    path = db_path or load_app_config().db_path
    init_db(path)
    console.print("[green]✓ Database ready[/green]")
    console.print(f"  [dim]path:[/dim] {path}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    console.print(f"[blue]Serving gradeflow API on http://{host}:{port}[/blue]")
    uvicorn.run("gradeflow.web.api:app", host=host, port=port, reload=reload)


@app.command()
def rebalance(
    skills: list[str] = typer.Argument(..., help="Skills as NAME:SCORE:QUESTIONS"),
    target: int = typer.Option(..., "--target", "-t", help="Total number of questions"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Rebalance per-skill question counts to a target total."""
    from rich.table import Table

    requests = [_parse_skill_spec(s) for s in skills]

    try:
        result = rebalance_distribution(requests, target)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Skill", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Requested", justify="right")
    table.add_column("Questions", justify="right", style="green")
    for a in result.allocations:
        table.add_row(a.skill_name, f"{a.score:g}", str(a.requested_questions), str(a.questions))
    console.print(table)

    if result.achieved_total != result.target_total:
        console.print(
            f"[yellow]⚠ Target {result.target_total} is below one question per skill; "
            f"using {result.achieved_total}[/yellow]"
        )
    else:
        console.print(f"  [dim]total:[/dim] {result.achieved_total}")


@app.command(name="practice-test")
def practice_test(
    skill: str = typer.Option(..., "--skill", "-s", help="Skill to practice"),
    student: str = typer.Option(..., "--student", help="Student name"),
    class_name: str = typer.Option(..., "--class-name", help="Class name"),
    grade: str = typer.Option(..., "--grade", help="Grade level"),
    subject: str = typer.Option(..., "--subject", help="Subject"),
    questions: int = typer.Option(5, "--questions", "-n", help="Number of questions"),
    class_id: str | None = typer.Option(None, "--class-id", help="Class id for historical examples"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the test as JSON"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="LLM provider: openai, lmstudio"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name (overrides config)"),
    llm_config: Path | None = typer.Option(None, "--llm-config", help="Models YAML (e.g. configs/models.yaml)"),
) -> None:
    """Generate a practice test for one skill."""
    if class_id:
        init_db(load_app_config().db_path)

    request = PracticeTestRequest(
        student_name=student,
        class_name=class_name,
        skill_name=skill,
        grade=grade,
        subject=subject,
        question_count=questions,
        class_id=class_id,
    )

    console.print(f"[blue]Generating practice test for {skill}...[/blue]")
    try:
        client = _build_llm_client(provider, model, llm_config)
        test = asyncio.run(generate_practice_test(request, client))
    except (LLMError, PracticeTestError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {test.title}[/green]")
    console.print(f"  [dim]questions:[/dim] {len(test.questions)}")
    console.print(f"  [dim]points:[/dim]    {test.total_points}")
    console.print(f"  [dim]time:[/dim]      {test.estimated_time} min")

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(test.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"  [dim]output:[/dim]    {output}")
    else:
        for q in test.questions:
            console.print(f"\n[bold]{q.id}[/bold] ({q.type}, {q.points} pt) {q.question}")
            for option in q.options or []:
                console.print(f"    - {option}")


@app.command()
def recommend(
    skill: str = typer.Option(..., "--skill", "-s", help="Weakest skill"),
    score: float = typer.Option(..., "--score", help="Skill score as a fraction (0-1)"),
    student: str = typer.Option(..., "--student", help="Student name"),
    class_name: str = typer.Option(..., "--class-name", help="Class name"),
    grade: str = typer.Option(..., "--grade", help="Grade level"),
    subject: str = typer.Option(..., "--subject", help="Subject"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="LLM provider: openai, lmstudio"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name (overrides config)"),
    llm_config: Path | None = typer.Option(None, "--llm-config", help="Models YAML (e.g. configs/models.yaml)"),
) -> None:
    """Practice recommendation for a student's weakest skill."""
    request = RecommendationRequest(
        student_name=student,
        class_name=class_name,
        weakest_skill=skill,
        skill_score=score,
        grade=grade,
        subject=subject,
    )

    try:
        client = _build_llm_client(provider, model, llm_config)
        text = asyncio.run(generate_practice_recommendation(request, client))
    except LLMError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(text)


@app.command(name="extract-text")
def extract_text(
    image: Path = typer.Argument(..., help="Scanned page (png, jpg, pdf page image)"),
    show_text: bool = typer.Option(False, "--text", help="Print the full OCR text"),
) -> None:
    """OCR a scanned page and detect exam ID, student ID and answers."""
    if not image.exists():
        console.print(f"[red]✗ File not found: {image}[/red]")
        raise typer.Exit(code=1)

    content = base64.b64encode(image.read_bytes()).decode("ascii")

    try:
        result = asyncio.run(VisionClient().extract_text(content))
    except OcrError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    student = detect_student_id(result.text, image.name)
    questions = extract_questions_from_text(result.text)

    console.print(f"[green]✓ Extracted {len(result.text):,} characters[/green]")
    console.print(f"  [dim]confidence:[/dim] {result.confidence:.2f}")
    console.print(f"  [dim]exam id:[/dim]    {detect_exam_id(result.text, image.name)}")
    console.print(
        f"  [dim]student id:[/dim] {student.detected_id or '-'} ({student.method}, {student.confidence:.2f})"
    )
    console.print(f"  [dim]questions:[/dim]  {len(questions)}")

    if show_text:
        console.print()
        console.print(result.text)


if __name__ == "__main__":
    app()
