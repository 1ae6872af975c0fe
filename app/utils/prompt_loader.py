import os
from functools import lru_cache

BASE_PATH = os.path.join(os.path.dirname(__file__), "..", "static", "prompts")


@lru_cache(maxsize=None)
def read_template(filename: str) -> str:
    path = os.path.join(BASE_PATH, filename)
    with open(path, encoding="utf-8") as f:
        return f.read()


def load_prompt(filename: str, **kwargs) -> str:
    """Render a prompt template; literal braces in templates are written as {{ }}."""
    return read_template(filename).format(**kwargs)
