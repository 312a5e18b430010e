"""drivezip: zip PDFs found in Google Drive folders and upload the archives back."""

__version__ = "1.0.0"
