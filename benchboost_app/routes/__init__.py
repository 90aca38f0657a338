"""
Routes package for the BenchBoost dashboard.

This package contains route blueprints:
- auth: landing page, sign-in, sign-up, sign-out and health check
- views: pages every signed-in role uses (dashboard, tasks, progress,
  leaderboard, settings) and the task form
- admin: user management, task verification, reports and analytics
"""
