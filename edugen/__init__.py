"""EduGen: AI-assisted lesson planning and assessment generation service."""
