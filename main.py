"""
Design Interview CLI

Runs an adaptive Q&A session about a design prompt in the terminal.

Usage:
    python main.py "Design a parking app"                      # interactive, BFS
    python main.py "Design a parking app" --mode dfs --max-questions 10
    python main.py "Design a parking app" --auto               # oracle answers its own questions
    python main.py --resume session.json                       # continue a saved session
    python main.py "Design a parking app" --offline questions.txt

Commands during the interview:
    :suggest   ask the oracle for a suggested answer
    :tree      print the question tree
    :retry     re-advance after an oracle fault or duplicate
    :reqs      update the requirements document
    :simplify  merge duplicate requirements
    :edit N A  replace the answer to question N with A
    :mockup    generate a UI mockup from the requirements
    :save      save the session
    :quit      save (if --save is set) and exit
"""

import argparse
import asyncio
import sys

from qna.config import get_config, set_config, configure_logging
from qna.knowledge import KnowledgeBaseProcessor, load_source
from qna.llm import validate_provider_setup
from qna.oracle import OracleClient, LLMTransport, ScriptedTransport
from qna.orchestrators import SessionController, QASettings, TurnResult, TurnStatus
from qna.synthesis import MockupGenerator, RequirementsSynthesizer, format_requirements
from qna.trees import iter_preorder, render_tree
from qna.types import QnAError, TraversalMode


def build_oracle(args) -> OracleClient:
    config = get_config()
    if args.offline:
        transport = ScriptedTransport.from_file(args.offline)
        if args.offline_answers:
            answers = ScriptedTransport.from_file(args.offline_answers)
            transport.add_suggestions(*answers.questions)
        return OracleClient(transport)
    return OracleClient(LLMTransport(config.provider, config.model, timeout=config.request_timeout))


def build_collaborators(config) -> dict:
    """Requirements synthesizer and mockup generator on their configured provider/model pairs."""
    requirements_provider, requirements_model = config.role_config("requirements")
    simplify_provider, simplify_model = config.role_config("simplify")
    mockup_provider, mockup_model = config.role_config("mockup")
    return {
        "synthesizer": RequirementsSynthesizer(
            provider=requirements_provider,
            model=requirements_model,
            simplify_provider=simplify_provider,
            simplify_model=simplify_model,
        ),
        "mockup_generator": MockupGenerator(provider=mockup_provider, model=mockup_model),
    }


def build_knowledge_processor(config) -> KnowledgeBaseProcessor:
    provider, model = config.role_config("knowledge")
    return KnowledgeBaseProcessor(provider=provider, model=model)


async def load_knowledge(paths: list[str], offline: bool) -> list:
    sources = [load_source(path) for path in paths]
    if offline:
        if sources:
            print("Offline mode: knowledge base files are loaded but not processed.")
        return sources
    processor = build_knowledge_processor(get_config())
    return [await processor.process(source) for source in sources]


def print_turn(result: TurnResult) -> None:
    if result.status == TurnStatus.NEXT:
        print(f"\nQ{result.node.sequence_number}: {result.message}")
    elif result.status in (TurnStatus.ORACLE_FAULT, TurnStatus.DUPLICATE):
        print(f"\n{result.message}\n(type :retry to try again)")
    else:
        print(f"\n{result.message}")


def save_session(session: SessionController, path: str | None) -> None:
    path = path or get_config().session_file
    saved = session.save(path)
    print(f"Session saved to {saved}")


def edit_answer(session: SessionController, command: str) -> None:
    """`:edit N new answer` re-answers question N; later questions are kept."""
    parts = command.split(maxsplit=2)
    if len(parts) < 3 or not parts[1].isdigit():
        print("Usage: :edit <question number> <new answer>")
        return
    number = int(parts[1])
    node = next((n for n in iter_preorder(session.tree) if n.sequence_number == number), None)
    if node is None:
        print(f"No question Q{number}")
        return
    session.edit_answer(node.id, parts[2])
    print(f"Q{number} updated.")


async def handle_command(command: str, session: SessionController, args) -> bool:
    """Run a `:command`. Returns False when the loop should exit."""
    if command == ":quit":
        return False
    if command == ":tree":
        print(render_tree(session.tree))
    elif command == ":save":
        save_session(session, args.save)
    elif command == ":retry":
        print_turn(await session.retry())
    elif command == ":suggest":
        suggestion = await session.suggest_answer()
        if suggestion is None:
            print("No suggestion available.")
        else:
            print(f"Suggested ({suggestion.confidence.value}): {suggestion.text}")
    elif command == ":reqs":
        doc = await session.update_requirements()
        print(format_requirements(doc))
    elif command == ":simplify":
        doc = await session.simplify_requirements()
        print(format_requirements(doc))
    elif command.startswith(":edit"):
        edit_answer(session, command)
    elif command == ":mockup":
        mockup = await session.generate_mockup()
        print(mockup.code)
        if mockup.next_steps:
            print("\nNext steps:\n" + "\n".join(f"- {step}" for step in mockup.next_steps))
    else:
        print(f"Unknown command: {command}")
    return True


async def run_interactive(session: SessionController, args) -> None:
    while session.current is not None:
        try:
            user_input = input("> ").strip()
        except EOFError:
            break
        if not user_input:
            continue

        try:
            if user_input.startswith(":"):
                if not await handle_command(user_input, session, args):
                    break
                continue
            print_turn(await session.submit_answer(user_input))
        except QnAError as e:
            print(f"Error: {e}")


async def run_automated(session: SessionController) -> None:
    print("Automation running (Ctrl+C to stop)...")
    session.start_automation()
    try:
        await session.automation.wait()
    except asyncio.CancelledError:
        await session.stop_automation()
        raise
    print(f"Automation stopped after {session.automation.cycles} answer(s): {session.automation.stop_reason}")
    print(f"\n{session.current_question_text}")


def roles_in_use(args) -> list[str]:
    """Collaborator roles that will call an LLM during this run."""
    if args.offline:
        return []
    roles = ["questions", "requirements", "simplify", "mockup"]
    if args.knowledge and not args.resume:
        roles.append("knowledge")
    return roles


def check_providers(config, roles: list[str]) -> bool:
    ok = True
    for role in roles:
        provider, model = config.role_config(role)
        setup = validate_provider_setup(provider, model)
        if not setup["valid"]:
            print(f"Configuration error ({role}): {setup['error']}")
            ok = False
        elif setup["missing_env_vars"]:
            print(f"Missing environment variables for {role} ({provider}/{model}): "
                  f"{', '.join(setup['missing_env_vars'])}")
            ok = False
    return ok


def apply_resume_overrides(session: SessionController, args) -> None:
    """Flags given on the command line win over the settings stored in the snapshot."""
    if args.mode:
        session.set_traversal_mode(args.mode)
        print(f"Traversal mode: {args.mode}")
    if args.max_questions is not None:
        session.set_max_questions(args.max_questions)
        print(f"Question limit: {args.max_questions}")


async def run(args) -> int:
    config = get_config()
    if not check_providers(config, roles_in_use(args)):
        return 2
    oracle = build_oracle(args)
    controller_kwargs = {} if args.offline else build_collaborators(config)
    controller_kwargs["settle_delay"] = config.settle_delay

    if args.resume:
        session = SessionController.load(args.resume, oracle, **controller_kwargs)
        print(f"Resumed: {session.design_prompt}")
        apply_resume_overrides(session, args)
        print(f"\n{session.current_question_text}")
    else:
        if not args.prompt:
            print("A design prompt is required unless --resume is given.")
            return 2
        settings = QASettings(
            traversal_mode=TraversalMode(config.traversal_mode),
            max_questions=config.max_questions,
            knowledge_base=await load_knowledge(args.knowledge, args.offline),
            auto_update_requirements=args.auto_requirements,
        )
        session = SessionController(oracle, settings=settings, **controller_kwargs)
        print_turn(await session.start(args.prompt))

    if args.auto:
        await run_automated(session)
    else:
        await run_interactive(session, args)

    if args.show_tree:
        print(render_tree(session.tree))
    if args.save:
        save_session(session, args.save)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Adaptive design interview")
    parser.add_argument("prompt", nargs="?", help="Design prompt, e.g. \"Design a parking app\"")
    parser.add_argument("--mode", choices=[m.value for m in TraversalMode], help="Traversal mode")
    parser.add_argument("--max-questions", type=int, help="Stop after this many questions")
    parser.add_argument("--auto", action="store_true", help="Let the oracle answer its own questions")
    parser.add_argument("--auto-requirements", action="store_true", help="Update requirements after every answer")
    parser.add_argument("--knowledge", action="append", default=[], help="Knowledge base text file (repeatable)")
    parser.add_argument("--save", help="Save the session to this file on exit")
    parser.add_argument("--resume", help="Resume a saved session")
    parser.add_argument("--show-tree", action="store_true", help="Print the question tree on exit")
    parser.add_argument("--offline", metavar="QUESTIONS_FILE", help="Replay questions from a file instead of an LLM")
    parser.add_argument("--offline-answers", metavar="ANSWERS_FILE", help="Suggested answers for --offline --auto")
    parser.add_argument("--provider", help="LLM provider for questions")
    parser.add_argument("--model", help="LLM model for questions")
    parser.add_argument("--settle-delay", type=float, help="Seconds between automated answers")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING)")
    args = parser.parse_args()

    overrides = {
        "traversal_mode": args.mode,
        "max_questions": args.max_questions,
        "provider": args.provider,
        "model": args.model,
        "settle_delay": args.settle_delay,
        "log_level": args.log_level,
    }
    config = set_config(**{k: v for k, v in overrides.items() if v is not None})

    try:
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2

    configure_logging(config.log_level)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except QnAError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
