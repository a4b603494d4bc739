"""Routes package for the directory application."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .businesses import businesses_bp
    from .boosts import boosts_bp

    app.register_blueprint(businesses_bp, url_prefix='/api/businesses')
    app.register_blueprint(boosts_bp, url_prefix='/api/boosts')
