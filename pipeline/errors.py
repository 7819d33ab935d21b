"""
Collaborator errors.

The timing and scoring core never raises in normal operation. Failures of the
camera or the pose model are fatal for that collaborator and are reported to
the user by the application.
"""


class CollaboratorError(RuntimeError):
    """A collaborator (camera, pose model) could not be initialized."""

    collaborator = "collaborator"

    def user_message(self) -> str:
        return f"{self.collaborator} unavailable: {self}"


class CaptureUnavailableError(CollaboratorError):
    """Camera or video source cannot be opened."""

    collaborator = "Camera"


class ModelUnavailableError(CollaboratorError):
    """Pose estimation model cannot be loaded."""

    collaborator = "Pose model"
