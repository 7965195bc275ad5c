"""WSGI entry point for the household simulation application."""

import os
import sys

from finsim import create_app

app = create_app()

if __name__ == "__main__":
    port = 5000

    # Check for PORT environment variable
    if "PORT" in os.environ:
        port = int(os.environ["PORT"])

    # Check for --port command line argument
    if len(sys.argv) > 2 and sys.argv[1] == "--port":
        port = int(sys.argv[2])

    debug = os.environ.get("FLASK_ENV", "development") == "development"
    app.run(debug=debug, host="0.0.0.0", port=port)
