"""Business model: a directory listing that can be boosted within its category."""

from datetime import datetime
from bizdirectory import db


class Business(db.Model):
    """Business listed in the directory.

    The boost fields describe the featured slot this business currently holds
    in its category. ``boost_active`` may lag behind ``boost_end_at`` until the
    next sweep, so readers should use ``is_boost_active(now)``.
    """

    __tablename__ = 'businesses'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=False, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Boost/featured slot fields
    boost_active = db.Column(db.Boolean, default=False, nullable=False, index=True)
    boost_category = db.Column(db.String(50), nullable=True, index=True)
    boost_start_at = db.Column(db.DateTime, nullable=True)
    boost_end_at = db.Column(db.DateTime, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # FIFO queue of pending boost requests for this business
    boost_queue = db.relationship(
        'BoostRequest',
        backref='business',
        order_by='BoostRequest.id',
        cascade='all, delete-orphan',
        lazy=True
    )

    def is_boost_active(self, now):
        """Check if the boost is currently active (flag set and window not over)."""
        if not self.boost_active:
            return False
        if self.boost_end_at is None:
            return False
        return now < self.boost_end_at

    def reset_boost(self):
        """Clear the active-window fields (queue is left untouched)."""
        self.boost_active = False
        self.boost_category = None
        self.boost_start_at = None
        self.boost_end_at = None

    def to_dict(self, now=None):
        """Convert business to dictionary."""
        now = now or datetime.utcnow()
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'owner_id': self.owner_id,
            'boost_active': self.boost_active,
            'is_boost_active': self.is_boost_active(now),
            'boost_category': self.boost_category,
            'boost_start_at': self.boost_start_at.isoformat() if self.boost_start_at else None,
            'boost_end_at': self.boost_end_at.isoformat() if self.boost_end_at else None,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def __repr__(self):
        return f'<Business {self.id}: {self.name}>'
