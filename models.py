# models.py
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ISBN_LENGTH = 16
AUTHOR_LENGTH = 50
TITLE_LENGTH = 150
CALL_NO_LENGTH = 40
USERNAME_LENGTH = 64


class Book(db.Model):
    __tablename__ = 'booklist'

    isbn = db.Column(db.String(ISBN_LENGTH), primary_key=True)
    author = db.Column(db.String(AUTHOR_LENGTH))
    title = db.Column(db.String(TITLE_LENGTH))
    call_no = db.Column(db.String(CALL_NO_LENGTH))
    username = db.Column(db.String(USERNAME_LENGTH), index=True)

    def to_dict(self):
        return {
            "isbn": self.isbn,
            "author": self.author,
            "title": self.title,
            "call_no": self.call_no,
            "username": self.username,
        }

    def __repr__(self):
        return f"<Book {self.isbn} {self.call_no}>"
