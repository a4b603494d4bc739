"""Queued boost request model."""

from datetime import datetime
from bizdirectory import db


class BoostRequest(db.Model):
    """A boost request waiting for the featured slot of its category.

    The window is fixed at enqueue time and stacks on the end of whatever
    was active or queued in the category before it.
    """

    __tablename__ = 'boost_requests'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    category = db.Column(db.String(50), nullable=False, index=True)
    scheduled_start = db.Column(db.DateTime, nullable=False, index=True)
    scheduled_end = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'requester_id': self.requester_id,
            'category': self.category,
            'scheduled_start': self.scheduled_start.isoformat(),
            'scheduled_end': self.scheduled_end.isoformat(),
            'created_at': self.created_at.isoformat()
        }

    def __repr__(self):
        return f'<BoostRequest {self.id}: business {self.business_id} @ {self.scheduled_start}>'
