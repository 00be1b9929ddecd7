"""Run the service: python -m speakerid [--host HOST] [--port PORT]"""
import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Speaker identification service")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    uvicorn.run("speakerid.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
