"""Entrypoint to run the style preference engine locally.

``python main.py`` replays the evaluation scenarios; ``python main.py serve``
starts the HTTP API.
"""

import sys

from evaluation.harness import run_smoke_checks


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if args and args[0] == "serve":
        import uvicorn

        uvicorn.run("server.api:get_app", host="0.0.0.0", port=8080, reload=False, factory=True)
        return
    for line in run_smoke_checks():
        print(line)


if __name__ == "__main__":
    main()
