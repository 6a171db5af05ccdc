"""
CandleForge – Application Layer
=================================
Orquestación de casos de uso. Depende solo de domain/ y de sus propios
puertos (ports/); las implementaciones concretas llegan por constructor.
"""
