from sqlmodel import Session

class BaseRepository:
    def __init__(self, session: Session):
        self.session = session

    def _commit(self):
        # A failed commit must not leave half a transition visible
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _write(self, statement):
        """Execute one UPDATE/DELETE as its own transaction."""
        try:
            result = self.session.execute(statement)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result
