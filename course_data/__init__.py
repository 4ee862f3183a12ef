"""Course data provider: derived course-to-destination values for a vessel feed."""
