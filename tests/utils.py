import json
import re


def clean_cli_output(output: str) -> str:
    """
    Remove ANSI escape codes, Rich formatting characters, whitespace, and newlines
    from CLI output to make assertions robust against terminal wrapping.
    """
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    output = ansi_escape.sub("", output)

    # Whitespace plus Rich box-drawing characters
    return re.sub(r"[\s│╭╮╰╯─]", "", output)


def write_cart(path, lines, tenders=None, **extra):
    """Write a cart JSON file in the format the CLI reads and return its path."""
    document = {"lines": lines, "tenders": tenders or [], **extra}
    path.write_text(json.dumps(document), encoding="utf-8")
    return path
