import atexit

import click
from flask import (
    Blueprint, Flask, Response, current_app, jsonify, make_response,
    render_template, request
)
from flask.cli import with_appcontext
from flask_cors import CORS
from loguru import logger

from classify import ClassifyClient
from config import configure_logging, engine_options, load_config
from errors import ClassificationNotFound, RouteFinderError, ValidationError
from library import Librarian
from models import db

USERNAME_COOKIE = "username"

bp = Blueprint("routefinder", __name__)


# ------------------- Helpers -------------------
def librarian() -> Librarian:
    return current_app.extensions["librarian"]


def request_data():
    """JSON body if there is one, otherwise form or multipart fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def resolve_username(params):
    """Return (username, came_from_params). Parameters win over the cookie."""
    name = params.get("name")
    if name and name.strip():
        return name.strip(), True
    return request.cookies.get(USERNAME_COOKIE), False


def remember_username(resp, username, from_params):
    if from_params and username:
        resp.set_cookie(USERNAME_COOKIE, username, samesite="Lax")
    return resp


# =================== PAGES ===================
@bp.route("/")
def index():
    return render_template("pages/index.html", username=request.cookies.get(USERNAME_COOKIE))


@bp.route("/route")
def route():
    username, from_params = resolve_username(request.args)
    try:
        books = librarian().list_books(username)
    except RouteFinderError as e:
        logger.error(f"/route failed for {username!r}: {e.detail or e.message}")
        return Response(f"Error: {e.message}", status=e.status_code, mimetype="text/plain")

    resp = make_response(render_template("pages/route.html", results=books, username=username))
    return remember_username(resp, username, from_params)


@bp.route("/add", methods=["GET", "POST"])
def add():
    if request.method == "GET":
        return render_template("pages/add.html", result=None, error=None)

    username, from_params = resolve_username(request.values)
    isbn = request.form.get("isbn", "")
    try:
        book = librarian().add_book(username=username, isbn=isbn)
    except RouteFinderError as e:
        logger.warning(f"/add failed for {isbn!r}: {e.detail or e.message}")
        page = render_template("pages/add.html", result=None, error=e.message, isbn=isbn)
        # the form page itself exists, only the lookup failed
        status = 422 if isinstance(e, ClassificationNotFound) else e.status_code
        return page, status

    resp = make_response(render_template("pages/add.html", result=book.to_dict(), error=None))
    return remember_username(resp, username, from_params)


# =================== API ===================
@bp.route("/api")
def api_root():
    return jsonify({"message": "Hello from the backend!"})


@bp.route("/api/books")
def api_books():
    username = request.args.get("name", "").strip()
    if not username:
        raise ValidationError("No username provided")

    books = librarian().list_books(username)
    return jsonify({"status": "success", "results": [b.to_dict() for b in books]})


@bp.route("/api/search", methods=["POST"])
def api_search():
    data = request_data()
    logger.debug(f"/api/search body: {data}")

    book = librarian().add_book(
        username=data.get("name"),
        isbn=data.get("isbn"),
        wi=data.get("wi"),
        title=data.get("title"),
        author=data.get("author"),
    )
    return jsonify({"status": "success", "book": book.to_dict()}), 201


@bp.route("/api/remove", methods=["POST"])
def api_remove():
    data = request_data()
    name = data.get("name")
    isbn = data.get("isbn")
    if not name and not isbn:
        raise ValidationError("A username or an ISBN is required")

    removed = librarian().remove_books(username=name, isbn=isbn)
    return jsonify({"status": "success", "removed": removed})


# =================== ERRORS ===================
def handle_routefinder_error(e):
    logger.warning(f"{request.method} {request.path} -> {e.code}: {e.detail or e.message}")
    return jsonify(e.to_dict()), e.status_code


def page_not_found(e):
    logger.debug(f"No route for {request.method} {request.path}")
    return render_template("pages/404.html"), 404


# =================== CLI ===================
@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create the booklist table if it does not exist."""
    if librarian().bootstrap():
        click.echo("Initialized the booklist table.")
    else:
        click.echo("Could not create the booklist table.", err=True)
        raise SystemExit(1)


# =================== FACTORY ===================
def create_app(overrides=None, classifier=None):
    settings = load_config()
    if overrides:
        settings.update(overrides)
        if "SQLALCHEMY_ENGINE_OPTIONS" not in overrides:
            settings["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(settings["SQLALCHEMY_DATABASE_URI"])

    configure_logging(settings["LOG_LEVEL"])

    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.update(settings)
    app.secret_key = settings["SECRET_KEY"]

    db.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    if classifier is None:
        classifier = ClassifyClient(app.config["CLASSIFY_URL"], timeout=app.config["CLASSIFY_TIMEOUT"])
    app.extensions["librarian"] = Librarian(db, classifier).open(app)
    if not app.testing:
        atexit.register(app.extensions["librarian"].close)

    app.register_blueprint(bp)
    app.register_error_handler(RouteFinderError, handle_routefinder_error)
    app.register_error_handler(404, page_not_found)
    app.cli.add_command(init_db_command)

    return app


# =================== RUN ===================
if __name__ == "__main__":
    app = create_app()
    logger.info(f"app listening on port {app.config['PORT']}")
    app.run(host="0.0.0.0", port=app.config["PORT"])
