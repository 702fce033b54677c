"""
Dialog asking for the Gemini API key.
"""

from typing import Optional

from PySide6.QtWidgets import (
    QCheckBox,
    QDialog,
    QDialogButtonBox,
    QLabel,
    QLineEdit,
    QVBoxLayout,
    QWidget,
)


class ApiKeyDialog(QDialog):
    """Modal prompt for the API key, optionally remembered in the config."""

    def __init__(self, current_key: str = "", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Gemini API Key")
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)

        intro = QLabel(
            "SiteSketch needs a Gemini API key to generate websites. "
            "You can create one in Google AI Studio.",
            self,
        )
        intro.setWordWrap(True)
        layout.addWidget(intro)

        self._key_edit = QLineEdit(current_key, self)
        self._key_edit.setEchoMode(QLineEdit.EchoMode.Password)
        self._key_edit.setPlaceholderText("Paste your API key")
        self._key_edit.textChanged.connect(self._update_buttons)
        layout.addWidget(self._key_edit)

        self._remember = QCheckBox("Remember this key", self)
        self._remember.setChecked(True)
        layout.addWidget(self._remember)

        self._buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel,
            parent=self,
        )
        self._buttons.accepted.connect(self.accept)
        self._buttons.rejected.connect(self.reject)
        layout.addWidget(self._buttons)

        self._update_buttons()

    @property
    def api_key(self) -> str:
        return self._key_edit.text().strip()

    @property
    def remember(self) -> bool:
        return self._remember.isChecked()

    def _update_buttons(self) -> None:
        self._buttons.button(QDialogButtonBox.StandardButton.Ok).setEnabled(bool(self.api_key))
