"""Escape command - turn a literal output line into an ``expected`` pattern."""

import re

import click


def escape_expected(line: str, yaml_quoted: bool = False) -> str:
    """Escape ``line`` so it matches itself as an ``expected`` regex.

    With ``yaml_quoted`` the result is wrapped as a YAML double-quoted
    scalar, doubling backslashes, ready to paste into ``actions.yaml``.
    """
    pattern = re.escape(line)
    if not yaml_quoted:
        return pattern
    body = pattern.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{body}"'


@click.command()
@click.argument("text", required=False)
@click.option(
    "--yaml",
    "yaml_quoted",
    is_flag=True,
    help="Print as a double-quoted YAML value",
)
def escape(text: str | None, yaml_quoted: bool) -> None:
    """Escape TEXT (or the first line of stdin) for use as an expected pattern.

    \b
      printer-patcher escape 'Version: 1.2 (beta)'
      uname -a | printer-patcher escape --yaml
    """
    if text is None:
        text = click.get_text_stream("stdin").readline().rstrip("\r\n")
    click.echo(escape_expected(text, yaml_quoted=yaml_quoted))
