# Routers
