from flask import Flask
from flask_cors import CORS

from .proxy.config import CODEBUDDY_BASE_URL, PROXY_HOST, PROXY_PORT
from .proxy.logger import logger
from .proxy.routes import register_routes


def create_app():
    app = Flask(__name__)
    app.url_map.strict_slashes = False
    CORS(
        app,
        origins="*",
        send_wildcard=True,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-api-key"],
        max_age=86400,
    )
    register_routes(app)
    return app


app = create_app()


def main():
    logger.info("Starting CodeBuddy gateway on %s:%s (upstream=%s)", PROXY_HOST, PROXY_PORT, CODEBUDDY_BASE_URL)
    app.run(host=PROXY_HOST, port=PROXY_PORT)


if __name__ == "__main__":
    main()
