"""Slash command handling."""

from messenger_gateway.commands.interceptor import HELP_MESSAGE, RESET_MESSAGE, CommandInterceptor, parse_command

__all__ = ["CommandInterceptor", "HELP_MESSAGE", "RESET_MESSAGE", "parse_command"]
