# models/document.py

from extensions import db


class Document(db.Model):
    """One whole JSON document per collection (categories, scores, ...)."""
    __tablename__ = 'documents'

    collection = db.Column(db.String(50), primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, server_default=db.func.current_timestamp(),
                           onupdate=db.func.current_timestamp())

    def __repr__(self):
        return f'<Document {self.collection}>'
