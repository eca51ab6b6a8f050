import atexit
import logging
import os
import time
from typing import Callable, Dict, Optional, Tuple

from flask import (
    Blueprint,
    Flask,
    abort,
    current_app,
    jsonify,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)

from qr_artifacts import (
    Artifact,
    ArtifactStore,
    EncodingCapacityExceeded,
    StoreWriteFailed,
    encode,
)
from retention import RetentionSweeper
from settings import Settings
from translations import (
    load_messages,
    preferred_languages,
    resolve_language,
    supported_languages,
)

logger = logging.getLogger(__name__)

bp = Blueprint("qr", __name__)

PAGE_TEMPLATE = """
<!doctype html>
<html lang="{{ lang }}">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{{ messages.Title }}</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 2rem; }
        form { margin-bottom: 2rem; }
        label { display: block; margin-bottom: 0.5rem; }
        textarea { padding: 0.5rem; width: 24rem; max-width: 100%; height: 6rem; margin-bottom: 1rem; }
        button { padding: 0.5rem 1rem; cursor: pointer; }
        .result { border: 1px solid #ccc; padding: 1.5rem; max-width: 20rem; }
        .error { color: #b00020; }
        .languages a { margin-right: 0.5rem; }
        #copy-to-clipboard { display: none; }
    </style>
</head>
<body>
    <h1>{{ messages.Title }}</h1>
    <p class="languages">
        {% for code in languages %}
            <a href="{{ url_for('qr.set_language', code=code) }}">{{ code|upper }}</a>
        {% endfor %}
    </p>
    <form method="post" action="{{ url_for('qr.generate') }}">
        <label for="data">{{ messages.inputLabel }}</label>
        <textarea id="data" name="data" required>{{ text|default('') }}</textarea>
        <div><button type="submit">{{ messages.generateButtonLabel }}</button></div>
    </form>

    {% if error %}
        <p class="error">{{ error }}</p>
    {% endif %}

    {% if qr_code %}
    <div class="result">
        <img id="imgQr" src="{{ qr_code }}" alt="QR Code" width="256" height="256" />
        <p>
            <button id="copy-to-clipboard" type="button">{{ messages.copyToClipboardButtonLabel }}</button>
            <button id="download" type="button">{{ messages.downloadButtonLabel }}</button>
        </p>
    </div>
    <script src="{{ url_for('static', filename='js/main.js') }}"></script>
    {% endif %}
</body>
</html>
"""


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _settings() -> Settings:
    return current_app.config["QR_SETTINGS"]


def _store() -> ArtifactStore:
    return current_app.extensions["artifact_store"]


def _page_language() -> Tuple[str, Dict[str, str], list]:
    settings = _settings()
    languages = supported_languages(settings.lang_dir, settings.languages)
    lang = resolve_language(
        session.get("lang"),
        preferred_languages(request.accept_languages),
        languages,
        settings.default_language,
    )
    return lang, load_messages(settings.lang_dir, lang), languages


def _render_page(lang: str, messages: Dict[str, str], languages: list, **context) -> str:
    context.setdefault("qr_code", "")
    context.setdefault("error", None)
    return render_template_string(
        PAGE_TEMPLATE, lang=lang, messages=messages, languages=languages, **context
    )


def _build_public_url(url_path: str) -> str:
    """
    Build a fully qualified URL for an artifact.
    Priority:
      1. BASE_URL setting (expected behind a proxy or on a hosted platform)
      2. Request host URL (useful for local development)
    """
    base = _settings().base_url or request.url_root
    return f"{base.rstrip('/')}{url_path}"


def _generate_artifact(text: str) -> Artifact:
    if not text:
        raise ValueError("text is required")
    return _store().store(encode(text))


@bp.route("/health", methods=["GET"])
def health_check():
    return jsonify({"status": "ok"}), 200


@bp.route("/", methods=["GET"])
def home():
    lang, messages, languages = _page_language()
    return _render_page(lang, messages, languages)


@bp.route("/generate", methods=["POST"])
def generate():
    lang, messages, languages = _page_language()
    text = request.form.get("data", "")

    try:
        artifact = _generate_artifact(text)
    except EncodingCapacityExceeded:
        error = messages.get("tooLongError", "Text is too long for a QR code.")
        return _render_page(lang, messages, languages, text=text, error=error), 413
    except ValueError:
        error = messages.get("emptyInputError", "Please enter some text.")
        return _render_page(lang, messages, languages, text=text, error=error), 400
    except StoreWriteFailed:
        error = messages.get("storeError", "The QR code could not be saved.")
        return _render_page(lang, messages, languages, text=text, error=error), 500

    return _render_page(lang, messages, languages, text=text, qr_code=artifact.url_path)


@bp.route("/api/generate", methods=["POST"])
def api_generate():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return jsonify({"error": "body must be a JSON object"}), 400
    text = payload.get("text", "")

    if not isinstance(text, str):
        return jsonify({"error": "text must be a string"}), 400

    try:
        artifact = _generate_artifact(text)
    except EncodingCapacityExceeded as exc:
        return jsonify({"error": str(exc)}), 413
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except StoreWriteFailed:
        return jsonify({"error": "artifact_write_failed"}), 500

    return (
        jsonify(
            {
                "file_name": artifact.file_name,
                "url_path": artifact.url_path,
                "url": _build_public_url(artifact.url_path),
                "created_at": artifact.created_at.isoformat(),
            }
        ),
        201,
    )


@bp.route("/language/<code>", methods=["GET"])
def set_language(code: str):
    settings = _settings()
    code = code.lower()
    if code not in supported_languages(settings.lang_dir, settings.languages):
        abort(404)
    session["lang"] = code
    return redirect(url_for("qr.home"))


def create_app(
    settings: Optional[Settings] = None,
    start_sweeper: bool = True,
    clock: Callable[[], float] = time.time,
) -> Flask:
    settings = settings or Settings.from_env()

    store = ArtifactStore(settings.static_root, settings.artifact_subdir)
    if not store.exists():
        raise RuntimeError(
            f"Artifact directory {store.directory} does not exist; create it before starting"
        )
    sweeper = RetentionSweeper(
        store.directory, settings.retention, placeholder=settings.placeholder, clock=clock
    )

    app = Flask(
        __name__,
        static_folder=os.path.abspath(settings.static_root),
        static_url_path="/static",
    )
    app.secret_key = settings.secret_key
    app.config["QR_SETTINGS"] = settings
    app.extensions["artifact_store"] = store
    app.extensions["retention_sweeper"] = sweeper
    app.register_blueprint(bp)

    if start_sweeper:
        sweeper.start()

    logger.info(
        "Serving artifacts from %s at %s (ttl=%ss)",
        store.directory,
        store.url_prefix,
        settings.ttl_seconds,
    )
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings)
    atexit.register(app.extensions["retention_sweeper"].stop)
    app.run(host="0.0.0.0", port=settings.port, threaded=True, use_reloader=False)
