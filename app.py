import click
from flask import Flask

from db import db
from utils.logging_utils import setup_logging


def create_app(test_config=None):
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///data.db'
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['LOG_LEVEL'] = 'INFO'
    app.config['TIMEZONE'] = 'UTC'

    # Scheduling defaults
    app.config['DEFAULT_REQUIRED_HOURS'] = 14
    app.config['DEFAULT_MAX_DAILY_HOURS'] = 4
    app.config['DEFAULT_TIME_LIMIT_MS'] = 10000
    app.config['STUDY_SESSION_REQUIRED_HOURS'] = 16

    # Population optimizer
    app.config['POPULATION_SIZE'] = 50
    app.config['GENERATIONS'] = 100
    app.config['DELTA'] = 0.009
    app.config['SINGLE_HOUR_BLOCK_PENALTY'] = 30
    app.config['LONG_BLOCK_PENALTY'] = 40
    app.config['TWO_HOUR_BLOCK_BONUS'] = 20
    app.config['RANDOM_SEED'] = None

    app.config.from_prefixed_env('PLANNER')
    if test_config is not None:
        app.config.update(test_config)

    setup_logging(app.config['LOG_LEVEL'])

    db.init_app(app)

    # Models must be imported before create_all sees their tables
    import models  # noqa: F401
    from blueprints.routes import bp
    app.register_blueprint(bp)

    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('Initialized the database.')

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
