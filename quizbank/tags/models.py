"""
Database models for the tag hierarchy.
"""
from datetime import datetime
from quizbank import db


class Tag(db.Model):
    """
    A single tag value.

    ``parent_name`` holds the owning tag's name: the exam type for a subject,
    the subject for a chapter and the chapter for a topic. Exam types and
    sources have an empty parent.
    """
    __tablename__ = "tags"

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(20), nullable=False, index=True)  # exam_types, subjects, chapters, topics, sources
    name = db.Column(db.String(255), nullable=False)
    parent_name = db.Column(db.String(255), nullable=False, default='', index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('category', 'parent_name', 'name', name='uq_tag_category_parent_name'),
        db.Index('ix_tags_category_parent', 'category', 'parent_name'),
    )

    def __repr__(self) -> str:
        return f"<Tag {self.category}: {self.parent_name + ' / ' if self.parent_name else ''}{self.name}>"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'category': self.category,
            'name': self.name,
            'parent': self.parent_name or None,
        }
