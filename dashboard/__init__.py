"""Admin dashboard backend: orders, expenses and analytics over Firestore."""
