"""User model for directory accounts (admins, business owners, users)."""

from datetime import datetime
from bizdirectory import db


ROLES = ('admin', 'business', 'user')


class User(db.Model):
    """Account that owns businesses or administers the directory."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(80), nullable=True)
    last_name = db.Column(db.String(80), nullable=True)
    role = db.Column(db.String(20), default='user', nullable=False)  # 'admin', 'business', 'user'
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    businesses = db.relationship('Business', backref='owner', lazy=True)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        """Convert user to dictionary."""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat()
        }

    def __repr__(self):
        return f'<User {self.email}>'
