# src/filepledge/api/__main__.py
from __future__ import annotations

import uvicorn

from filepledge.env import load_dotenv_if_present


def main() -> None:
    # .env must be loaded before anything reads FILEPLEDGE_* vars.
    load_dotenv_if_present()

    from filepledge.api.app import create_app
    from filepledge.runtime.chain_config import load_chain_config

    cfg = load_chain_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
