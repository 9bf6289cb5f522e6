"""Allow ``python -m mta_supervisor``."""

from mta_supervisor.main import run

if __name__ == "__main__":
    run()
