"""
Interactive CLI adapter for WhyForge.

Architectural role:
- Terminal interface over the question and answer pipelines.
- Shares the composition root (`build_services`) with the HTTP adapter.

Request lifecycle (per user turn):
1. Read stdin.
2. Handle local control commands (`exit`/`quit`, `/wildcard`, `/stats`).
3. Generate a question from the text, then an answer under the same tone.
4. Print question, hook line and answer.

Input validation behavior:
- Empty input is ignored.
- `/wildcard <name>` validates the name against the tone catalog;
  `/wildcard random` clears the selection.

Error handling strategy:
- Pipeline errors are printed as one line and the loop continues.
- EOF and keyboard interrupts terminate the loop without traceback output.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
import os
import sys

from whyforge.api.services import Services, build_services
from whyforge.core.errors import WhyForgeError
from whyforge.prompting.tone_catalog import TONE_NAMES


logger = logging.getLogger(__name__)

CLI_USER_ID = "cli"
SEPARATOR = "-" * 60


# =========================================================
# UTF-8 SAFE OUTPUT
# =========================================================

if hasattr(sys.stdout, "reconfigure"):
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="ignore")
    except (AttributeError, ValueError, OSError):
        pass


# =========================================================
# TURN HANDLING
# =========================================================

async def answer_turn(services: Services, text: str, tone_name: str | None) -> None:
    """Generate and print one question/answer pair."""
    question = await services.question_pipeline.generate_question(
        text,
        tone_name=tone_name,
        user_id=CLI_USER_ID,
    )

    print(f"\nQuestion ({question.tone_applied.name}, {question.category}, "
          f"complexity {question.complexity_score}):")
    print(f"  {question.question}")
    print(f"  {question.hook_line}\n")

    answer = await services.answer_pipeline.generate_answer(
        question.question,
        tone=question.tone_applied,
        question_id=question.question_id,
    )

    print("Answer:\n")
    print(answer.answer)
    if answer.sources:
        print("\nSources: " + ", ".join(answer.sources))


def handle_command(services: Services, command: str, tone_name: str | None) -> str | None:
    """Apply a local slash command and return the (possibly changed) tone."""
    parts = command.split()

    if parts[0] == "/stats":
        stats = services.question_pipeline.get_user_stats(CLI_USER_ID)
        if stats is None:
            print("\nNo questions generated yet.\n")
        else:
            print(f"\nQuestions generated: {stats['total_questions']}")
            print(f"Favorite wildcards: {', '.join(stats['favorite_wildcards'])}")
            print(f"Categories: {', '.join(stats['categories'])}\n")
        return tone_name

    if parts[0] == "/wildcard":
        if len(parts) == 1 or parts[1].lower() == "help":
            print("\nAvailable wildcards:")
            for tone in services.catalog.all_tones():
                print(f" - {tone.name}: {tone.description}")
            print("\nUsage:")
            print(" /wildcard <name>")
            print(" /wildcard random")
            print(f"\nCurrent wildcard: {tone_name or 'random'}\n")
            return tone_name

        requested = parts[1].lower()
        if requested == "random":
            print("\nWildcard cleared; a random one is picked per question.\n")
            return None
        if requested not in TONE_NAMES:
            print(f"\nWildcard '{requested}' not found.\n")
            return tone_name

        print(f"\nSwitched to wildcard: {requested}\n")
        return requested

    print(f"\nUnknown command: {parts[0]}\n")
    return tone_name


# =========================================================
# MAIN
# =========================================================

def main(services: Services | None = None) -> None:
    """Run the interactive loop until `exit`, EOF or interrupt."""
    logging.basicConfig(level=logging.DEBUG if os.getenv("DEBUG") == "true" else logging.WARNING)

    services = services or build_services()
    tone_name = None

    print("WhyForge started. Type a topic to get a \"Why\" question (type 'exit' to quit)")
    print("Commands: /wildcard <name|random|help>, /stats\n")

    stats = services.offline_cache.stats()
    print(f"Offline cache: {stats['questions']} questions, {stats['answers']} answers")
    print(SEPARATOR)

    while True:

        try:
            text = input("Topic: ").strip()

        except EOFError:
            print("\nGoodbye.")
            break

        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            break

        if not text:
            continue

        if text.lower() in ("exit", "quit"):
            print("Shutting down.")
            break

        if text.startswith("/"):
            tone_name = handle_command(services, text, tone_name)
            continue

        try:
            asyncio.run(answer_turn(services, text, tone_name))
        except WhyForgeError as err:
            print(f"\nError ({err.kind}): {err.message}")

        print("\n" + SEPARATOR + "\n")


if __name__ == "__main__":
    main()
