# Overview: Service layer; each public mutating operation is one unit of work.
