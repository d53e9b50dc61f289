from pathlib import Path

from dotenv import load_dotenv


def load_env() -> None:
    """Load .env from the working directory if present.
    Variables already set in the process environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)
