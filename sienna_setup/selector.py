"""Interactive selection of the context and the namespace to set up."""

import sys
from typing import Optional, TextIO

from sienna_setup import config
from sienna_setup.kubeconfig import ClusterContext, Kubeconfig, resolve_context


def open_prompt_stream() -> TextIO:
    """
    Where to read answers from. When the setup is piped into a shell
    (curl ... | python) stdin is the script itself, so read from the terminal.
    """
    if sys.stdin.isatty():
        return sys.stdin
    try:
        return open("/dev/tty", "r")
    except OSError:
        return sys.stdin


class Prompter:
    """Ask the operator questions on a terminal."""

    def __init__(self, in_stream: TextIO, out_stream: Optional[TextIO] = None):
        self.in_stream = in_stream
        self.out_stream = out_stream or sys.stdout

    def say(self, message: str = ""):
        print(message, file=self.out_stream)

    def ask(self, question: str) -> str:
        print(question, end="", file=self.out_stream, flush=True)
        return self.in_stream.readline().strip()

    def confirm(self, question: str) -> bool:
        return self.ask(f"{question} (y/n): ").lower().startswith("y")


def select_context(
    kubeconfig: Kubeconfig, context_name: Optional[str] = None, prompter: Optional[Prompter] = None
) -> ClusterContext:
    """
    Pick the context to use: the one named explicitly, otherwise the current
    one unless the operator wants to choose another one.
    """
    if context_name is not None:
        return resolve_context(kubeconfig, context_name)
    context = resolve_context(kubeconfig)
    if prompter is None:
        return context

    prompter.say(f"📍 Current kubectl context: {context.name}")
    if prompter.confirm("Use this context?"):
        return context
    prompter.say()
    prompter.say("Available contexts:")
    for name in kubeconfig.context_names():
        prompter.say(name)
    prompter.say()
    return resolve_context(kubeconfig, prompter.ask("Enter the context name you want to use: "))


def select_namespace(choice: str, prompter: Optional[Prompter] = None) -> str:
    """Map a menu choice to a namespace name, '3' asks for a custom one."""
    choice = choice.strip() or "1"
    if choice in config.NAMESPACE_CHOICES:
        return config.NAMESPACE_CHOICES[choice]
    if choice == "3" and prompter is not None:
        namespace = prompter.ask("Enter namespace name: ")
        if not namespace:
            raise ValueError("Namespace cannot be empty")
        return namespace
    raise ValueError(f"Invalid choice '{choice}'. Please run the setup again.")


def prompt_namespace(prompter: Prompter) -> str:
    prompter.say("📦 Choose namespace for Sienna service account:")
    prompter.say(
        f"1. Use '{config.DEFAULT_NAMESPACE}' namespace "
        "(recommended - will be created if it doesn't exist)"
    )
    prompter.say("2. Use 'default' namespace")
    prompter.say("3. Enter custom namespace")
    prompter.say()
    return select_namespace(prompter.ask("Select option (1-3) [1]: "), prompter)
