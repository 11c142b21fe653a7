"""
CLI voice session: talk to the AI coach from a terminal.

Speak into the configured microphone. Typed lines are sent through the
text side channel.

    python -m cli.voice_session --voice alloy
"""

import argparse
import asyncio
import sys

from app.core.config import settings
from app.enums.session_enums import MessageSender, SessionStatus
from app.realtime.api_client import CoachApiClient
from app.realtime.conversation import ConversationMessage, RealtimeConversation
from app.realtime.notifications import Notice, Notifier
from app.realtime.state_machine import ConversationState


class Colors:
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"
    END = "\033[0m"


STATE_LABELS = {
    ConversationState.IDLE: "Idle",
    ConversationState.CONNECTING: "Connecting...",
    ConversationState.LISTENING: "Listening...",
    ConversationState.THINKING: "Thinking...",
    ConversationState.SPEAKING: "Speaking",
}


class TerminalNotifier(Notifier):
    def notify(self, notice: Notice) -> None:
        color = Colors.RED if notice.destructive else Colors.YELLOW
        print(f"\n{color}{Colors.BOLD}{notice.title}:{Colors.END} {color}{notice.description}{Colors.END}")


def print_banner():
    print(f"""
{Colors.BOLD}{'='*65}
   AI VOICE COACH: Feedback Session
{'='*65}{Colors.END}

{Colors.YELLOW}Commands:{Colors.END}
  /pause    Pause and save the session
  /stop     End the session and get your summary
  /quit     Leave without summarizing

{Colors.CYAN}Speak naturally. Anything you type is sent as a message.{Colors.END}
{'─'*65}
""")


def print_state(state: ConversationState):
    print(f"{Colors.YELLOW}   [{STATE_LABELS[state]}]{Colors.END}")


def print_caption(text: str):
    # Redrawn in place on every delta; cleared when the reply is finalized
    if text:
        print(f"\r\033[K{Colors.CYAN}   {text[-70:]}{Colors.END}", end="", flush=True)
    else:
        print("\r\033[K", end="", flush=True)


def print_message(message: ConversationMessage):
    if message.sender == MessageSender.AI:
        print(f"{Colors.BLUE}{Colors.BOLD}Coach:{Colors.END} {Colors.BLUE}{message.text}{Colors.END}")
    else:
        print(f"{Colors.GREEN}{Colors.BOLD}You:{Colors.END} {message.text}")


def print_summary(session: dict):
    print(f"\n{Colors.BOLD}Session {session.get('status')}{Colors.END}")
    if session.get("duration_seconds") is not None:
        minutes, seconds = divmod(session["duration_seconds"], 60)
        print(f"  Duration: {minutes}m {seconds}s")
    if session.get("summary"):
        print(f"\n{Colors.BOLD}Summary:{Colors.END}\n  {session['summary']}")
    for title, key in (("Goals", "main_goals"), ("Topics", "topics_discussed")):
        items = session.get(key) or []
        if items:
            print(f"\n{Colors.BOLD}{title}:{Colors.END}")
            for item in items:
                print(f"  - {item}")
    print()


async def run(voice: str, base_url: str, token: str) -> int:
    print_banner()

    async with CoachApiClient(base_url=base_url, token=token) as api:
        conversation = RealtimeConversation(
            api,
            notifier=TerminalNotifier(),
            voice=voice,
            on_state_change=print_state,
            on_transcript_update=print_caption,
            on_message=print_message,
        )

        try:
            await conversation.start()
        except Exception as e:
            print(f"\n{Colors.RED}Could not start the conversation: {e}{Colors.END}")
            await conversation.manager.end_session(SessionStatus.COMPLETED)
            return 1

        loop = asyncio.get_running_loop()
        try:
            while conversation.state != ConversationState.IDLE:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue

                if line == "/pause":
                    await conversation.pause()
                    print(f"\n{Colors.YELLOW}Session paused. Start a new one whenever you're ready.{Colors.END}\n")
                    return 0
                if line == "/stop":
                    print(f"\n{Colors.YELLOW}⏳ Wrapping up and summarizing...{Colors.END}")
                    session = await conversation.stop(SessionStatus.COMPLETED)
                    if session:
                        print_summary(session)
                    return 0
                if line == "/quit":
                    break

                if not conversation.send_text(line):
                    print(f"{Colors.RED}Not connected, message not sent.{Colors.END}")

        except KeyboardInterrupt:
            print(f"\n\n{Colors.YELLOW}Interrupted. Goodbye!{Colors.END}")

        await conversation.disconnect()
        await conversation.manager.end_session(SessionStatus.COMPLETED)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Voice coaching session in the terminal")
    parser.add_argument("--voice", default=settings.REALTIME_VOICE, help="Voice for synthesized speech")
    parser.add_argument("--api-url", default=settings.COACH_API_URL, help="Backend base URL, including /api/v1")
    parser.add_argument("--token", default=settings.COACH_API_TOKEN, help="Clerk session token")
    args = parser.parse_args()

    if not args.token:
        print(f"{Colors.RED}A Clerk session token is required (--token or COACH_API_TOKEN).{Colors.END}")
        sys.exit(2)

    try:
        sys.exit(asyncio.run(run(args.voice, args.api_url, args.token)))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Goodbye!{Colors.END}")


if __name__ == "__main__":
    main()
