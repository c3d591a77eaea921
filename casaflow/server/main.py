"""``casaflow-server``: run the API under uvicorn."""

import argparse
import logging
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="casaflow agent API")
    parser.add_argument("--config", help="YAML config path (default: $CASAFLOW_CONFIG or config.yaml)")
    parser.add_argument("--host", default=os.getenv("CASAFLOW_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("CASAFLOW_PORT", "8000")))
    parser.add_argument("--log-level", default=os.getenv("CASAFLOW_LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.config:
        os.environ["CASAFLOW_CONFIG"] = args.config

    # Imported late so CASAFLOW_CONFIG is set before the app reads it
    from .app import api
    uvicorn.run(api, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
