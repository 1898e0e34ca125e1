# vivasmart/services: lógica de negocio (sin Flask request/response)
