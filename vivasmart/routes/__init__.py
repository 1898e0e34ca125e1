# vivasmart/routes: blueprints HTTP (Gateway)
