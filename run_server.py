"""Flask server that stays alive"""

import sys

if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")

from app import create_app, socketio
from app.config import load_config


def main() -> None:
    config = load_config()
    app = create_app()

    print(f"Server starting on http://{config.host}:{config.port}")
    print("Press Ctrl+C to stop\n")

    try:
        # socketio.run() instead of app.run() for WebSocket support
        socketio.run(
            app,
            host=config.host,
            port=config.port,
            debug=config.DEBUG,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")


if __name__ == "__main__":
    main()
